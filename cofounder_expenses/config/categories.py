# ============================================
# EXPENSE CATEGORY CATALOGUE
# ============================================

"""
Default categories seeded for every new company and the icon names a
founder may pick for a custom one.
"""

import re
from typing import Dict, List

# Catch-all for custom entries; always listed last and never removable
OTHER_VALUE = "OTHER"

DEFAULT_CATEGORIES: List[Dict[str, str]] = [
    {"value": "FOOD", "label": "Food & Dining", "icon": "Utensils"},
    {"value": "TRANSPORT", "label": "Transport", "icon": "Car"},
    {"value": "SOFTWARE", "label": "Software", "icon": "Monitor"},
    {"value": "HARDWARE", "label": "Hardware", "icon": "Laptop"},
    {"value": "OFFICE", "label": "Office", "icon": "Building"},
    {"value": "TRAVEL", "label": "Travel", "icon": "Plane"},
    {"value": "MARKETING", "label": "Marketing", "icon": "Megaphone"},
    {"value": "SERVICES", "label": "Services", "icon": "Briefcase"},
    {"value": OTHER_VALUE, "label": "Other", "icon": "MoreHorizontal"},
]

CATEGORY_ICONS = [
    "Tag", "Utensils", "Car", "Monitor", "Laptop", "Building", "Plane",
    "Megaphone", "Briefcase", "ShoppingCart", "CreditCard", "FileText",
    "Wrench", "Users", "Package", "Globe", "Phone", "Zap", "Heart", "Star",
    "MoreHorizontal",
]

DEFAULT_ICON = "Tag"


def label_to_value(label: str) -> str:
    """'Legal Fees' -> 'LEGAL_FEES'"""
    return re.sub(r"[^A-Z0-9]+", "_", label.strip().upper()).strip("_")
