from __future__ import annotations

from typing import Dict, List

from health_procure.domain.contracts import Priority


PROCUREMENT_CATEGORIES: List[str] = ["HR", "Infrastructure", "Equipment", "Training"]


CATEGORIZED_ITEMS: Dict[str, List[str]] = {
    "HR": [
        "Medical Officer (MBBS)",
        "AYUSH MO",
        "Staff Nurse",
        "Pharmacist",
        "Lab Technician",
        "FHS",
        "FHW",
        "MPHW",
        "Accountant/DEO",
        "Peon",
        "Sweeper",
        "Security",
    ],
    "Infrastructure": [
        "New Building Construction",
        "Building Renovation",
        "Plumbing/Electrical Work",
        "Furniture",
    ],
    "Equipment": [
        "Radiant Warmer",
        "X-Ray Machine",
        "3 Part Hematology analyzer",
        "ESR analyzer",
        "HbA1C Analyzer",
        "Hemoglobinometer",
        "Glucometer",
        "Suction Machine",
        "Pulse oximeter",
        "Labour Bed",
        "Fetal Doppler",
        "Phototherapy Unit",
        "Examination Table with footstep",
        "BP apparatus",
        "Foot Operated Suction Machine",
        "ILR with Voltage Stabilizer",
        "DF Small with Voltage Stabilizer",
        "Blood group kit",
        "Wet mounting and gram staining",
        "Emergency Drug Tray",
        "Oxygen Cylinder",
        "Ambu Bags (for adult & neonatal)",
        "Delivery Trolley",
        "Lights for conducting deliveries",
        "Delivery tray",
        "Episiotomy tray",
        "Baby tray",
        "MVA tray",
        "PPIUCD tray",
        "Kelly pads",
        "Sponge holding forceps",
        "Vulsellum uterine forceps",
        "Normal Delivery Kit",
        "Equipment for assisted forceps delivery",
        "Standard Surgical Set (for minor procedures)",
        "Equipment for Manual Vacuum Aspiration",
        "IUCD insertion kit",
    ],
    "Training": [
        "CPR Training",
        "Advanced First Aid",
        "Medical Software Training",
        "New Equipment Training",
    ],
}


def normalize_category(value: str | None) -> str | None:
    normalized = str(value or "").strip().lower()
    for category in PROCUREMENT_CATEGORIES:
        if category.lower() == normalized:
            return category
    return None


def search_items(query: str | None = None) -> Dict[str, List[str]]:
    needle = str(query or "").strip().lower()
    if not needle:
        return {category: list(items) for category, items in CATEGORIZED_ITEMS.items()}
    matches: Dict[str, List[str]] = {}
    for category, items in CATEGORIZED_ITEMS.items():
        found = [item for item in items if needle in item.lower()]
        if found:
            matches[category] = found
    return matches


def catalog_bundle() -> Dict[str, object]:
    return {
        "categories": list(PROCUREMENT_CATEGORIES),
        "priorities": [priority.value for priority in Priority],
        "items": search_items(),
    }
