"""
Helper Utilities Module.

Small generic helpers shared by the pipeline modules.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - get_file_extension: Extract file extension safely
    - vendor_key: Case-insensitive key for vendor names
    - merge_vendor_categories: Case-insensitive upsert of mappings
"""

from pathlib import Path
from typing import Dict, Mapping, Union


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.

    Example:
        >>> ensure_directory("data")
        PosixPath('data')
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def get_file_extension(filepath: Union[str, Path]) -> str:
    """
    Extract the lowercase file extension (with dot) from a filepath.

    Example:
        >>> get_file_extension("bill.PNG")
        ".png"
    """
    return Path(filepath).suffix.lower()


def vendor_key(vendor: str) -> str:
    """Case-insensitive lookup key for a vendor name."""
    return " ".join(vendor.split()).casefold()


def merge_vendor_categories(
    base: Mapping[str, str],
    updates: Mapping[str, str]
) -> Dict[str, str]:
    """
    Merge vendor-category updates into a mapping.

    Keys are compared case-insensitively: an update for "NETFLIX"
    replaces an existing "Netflix" entry instead of adding a second
    one. Unrelated keys are kept untouched.

    Args:
        base: Existing vendor -> category mapping.
        updates: Entries to upsert.

    Returns:
        New merged dictionary (inputs are not modified).

    Example:
        >>> merge_vendor_categories({"Netflix": "Subscriptions"}, {"EDF": "Utilities"})
        {'Netflix': 'Subscriptions', 'EDF': 'Utilities'}
    """
    merged = dict(base)
    existing = {vendor_key(name): name for name in merged}

    for vendor, category in updates.items():
        previous = existing.get(vendor_key(vendor))
        if previous is not None and previous != vendor:
            del merged[previous]
        merged[vendor] = category
        existing[vendor_key(vendor)] = vendor

    return merged
