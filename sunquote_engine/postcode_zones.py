"""
Static postcode -> jurisdiction + STC certificate zone lookup.

Zones follow the Clean Energy Regulator's postcode zone ratings (1 = sunniest,
4 = least sunny). Only postcodes we quote for are listed; anything else has to
be resolved some other way or rejected.
"""

# Precomputed LocationRecords keyed by 4-digit postcode
POSTCODE_ZONES = {
    # --- New South Wales ---
    "2000": {"jurisdiction": "NSW", "certificate_zone": 3},  # Sydney
    "2010": {"jurisdiction": "NSW", "certificate_zone": 3},  # Surry Hills
    "2040": {"jurisdiction": "NSW", "certificate_zone": 3},  # Leichhardt
    "2065": {"jurisdiction": "NSW", "certificate_zone": 3},  # St Leonards
    "2100": {"jurisdiction": "NSW", "certificate_zone": 3},  # Brookvale
    "2145": {"jurisdiction": "NSW", "certificate_zone": 3},  # Westmead
    "2150": {"jurisdiction": "NSW", "certificate_zone": 3},  # Parramatta
    "2170": {"jurisdiction": "NSW", "certificate_zone": 3},  # Liverpool
    "2250": {"jurisdiction": "NSW", "certificate_zone": 3},  # Gosford
    "2300": {"jurisdiction": "NSW", "certificate_zone": 3},  # Newcastle
    "2500": {"jurisdiction": "NSW", "certificate_zone": 3},  # Wollongong
    "2650": {"jurisdiction": "NSW", "certificate_zone": 3},  # Wagga Wagga
    "2750": {"jurisdiction": "NSW", "certificate_zone": 3},  # Penrith
    "2830": {"jurisdiction": "NSW", "certificate_zone": 2},  # Dubbo
    "2880": {"jurisdiction": "NSW", "certificate_zone": 2},  # Broken Hill
    # --- Australian Capital Territory ---
    "2600": {"jurisdiction": "ACT", "certificate_zone": 3},  # Canberra
    "2612": {"jurisdiction": "ACT", "certificate_zone": 3},  # Braddon
    "2905": {"jurisdiction": "ACT", "certificate_zone": 3},  # Tuggeranong
    # --- Victoria ---
    "3000": {"jurisdiction": "VIC", "certificate_zone": 4},  # Melbourne
    "3121": {"jurisdiction": "VIC", "certificate_zone": 4},  # Richmond
    "3220": {"jurisdiction": "VIC", "certificate_zone": 4},  # Geelong
    "3350": {"jurisdiction": "VIC", "certificate_zone": 4},  # Ballarat
    "3550": {"jurisdiction": "VIC", "certificate_zone": 3},  # Bendigo
    "3500": {"jurisdiction": "VIC", "certificate_zone": 3},  # Mildura
    # --- Queensland ---
    "4000": {"jurisdiction": "QLD", "certificate_zone": 3},  # Brisbane
    "4217": {"jurisdiction": "QLD", "certificate_zone": 3},  # Surfers Paradise
    "4350": {"jurisdiction": "QLD", "certificate_zone": 3},  # Toowoomba
    "4700": {"jurisdiction": "QLD", "certificate_zone": 3},  # Rockhampton
    "4810": {"jurisdiction": "QLD", "certificate_zone": 3},  # Townsville
    "4825": {"jurisdiction": "QLD", "certificate_zone": 1},  # Mount Isa
    "4870": {"jurisdiction": "QLD", "certificate_zone": 3},  # Cairns
    # --- South Australia ---
    "5000": {"jurisdiction": "SA", "certificate_zone": 3},  # Adelaide
    "5290": {"jurisdiction": "SA", "certificate_zone": 4},  # Mount Gambier
    "5700": {"jurisdiction": "SA", "certificate_zone": 2},  # Port Augusta
    "5723": {"jurisdiction": "SA", "certificate_zone": 1},  # Coober Pedy
    # --- Western Australia ---
    "6000": {"jurisdiction": "WA", "certificate_zone": 3},  # Perth
    "6160": {"jurisdiction": "WA", "certificate_zone": 3},  # Fremantle
    "6430": {"jurisdiction": "WA", "certificate_zone": 2},  # Kalgoorlie
    "6714": {"jurisdiction": "WA", "certificate_zone": 1},  # Karratha
    "6725": {"jurisdiction": "WA", "certificate_zone": 1},  # Broome
    # --- Tasmania ---
    "7000": {"jurisdiction": "TAS", "certificate_zone": 4},  # Hobart
    "7250": {"jurisdiction": "TAS", "certificate_zone": 4},  # Launceston
    # --- Northern Territory ---
    "0800": {"jurisdiction": "NT", "certificate_zone": 2},  # Darwin
    "0850": {"jurisdiction": "NT", "certificate_zone": 2},  # Katherine
    "0870": {"jurisdiction": "NT", "certificate_zone": 1},  # Alice Springs
}


def lookup_postcode(postcode: str | None) -> dict | None:
    """Returns the LocationRecord for a postcode, or None if it is not in the table."""
    if not postcode:
        return None
    return POSTCODE_ZONES.get(postcode.strip())
