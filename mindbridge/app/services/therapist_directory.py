"""Therapist directory backed by a static catalogue.

Search is a linear filter over the catalogue followed by a sort on rating.
Geolocation parameters are accepted by the API but not applied yet.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

MAX_SEARCH_LENGTH = 100


@dataclass(frozen=True)
class AvailableSlot:
    date: str
    time: str
    available: bool = True


@dataclass(frozen=True)
class Therapist:
    id: str
    name: str
    email: str
    specialization: str
    experience: int
    state: str
    city: str
    rating: float
    completed_sessions: int
    hourly_rate: int  # kobo
    bio: str
    qualifications: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    available_slots: List[AvailableSlot] = field(default_factory=list)
    verified: bool = True
    coordinates: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "id": data["id"],
            "name": data["name"],
            "email": data["email"],
            "specialization": data["specialization"],
            "experience": data["experience"],
            "state": data["state"],
            "city": data["city"],
            "rating": data["rating"],
            "completedSessions": data["completed_sessions"],
            "hourlyRate": data["hourly_rate"],
            "bio": data["bio"],
            "qualifications": data["qualifications"],
            "languages": data["languages"],
            "availableSlots": data["available_slots"],
            "verified": data["verified"],
            "coordinates": data["coordinates"],
        }


THERAPIST_CATALOGUE: List[Therapist] = [
    Therapist(
        id="1",
        name="Dr. Adaora Okafor",
        email="adaora.okafor@mindbridge.ng",
        specialization="Anxiety & Depression",
        experience=8,
        state="Lagos",
        city="Ikeja",
        rating=4.9,
        completed_sessions=150,
        hourly_rate=15000,
        bio="Experienced clinical psychologist specializing in anxiety disorders and cognitive behavioral therapy.",
        qualifications=["PhD Clinical Psychology", "Licensed Therapist (Nigeria)", "CBT Certified"],
        languages=["English", "Igbo", "Yoruba"],
        available_slots=[
            AvailableSlot("2025-08-05", "14:00"),
            AvailableSlot("2025-08-05", "16:00"),
            AvailableSlot("2025-08-06", "10:00"),
        ],
        coordinates={"lat": 6.5244, "lng": 3.3792},
    ),
    Therapist(
        id="2",
        name="Dr. Emeka Johnson",
        email="emeka.johnson@mindbridge.ng",
        specialization="Trauma & PTSD",
        experience=12,
        state="FCT - Abuja",
        city="Garki",
        rating=4.8,
        completed_sessions=200,
        hourly_rate=18000,
        bio="Trauma specialist with extensive experience in PTSD treatment and recovery.",
        qualifications=["MD Psychiatry", "PTSD Specialist", "Trauma-Informed Care Certified"],
        languages=["English", "Hausa"],
        available_slots=[
            AvailableSlot("2025-08-06", "10:00"),
            AvailableSlot("2025-08-06", "14:00"),
            AvailableSlot("2025-08-07", "09:00"),
        ],
        coordinates={"lat": 9.0765, "lng": 7.3986},
    ),
    Therapist(
        id="3",
        name="Dr. Fatima Hassan",
        email="fatima.hassan@mindbridge.ng",
        specialization="Relationship Counseling",
        experience=6,
        state="Kano",
        city="Fagge",
        rating=4.7,
        completed_sessions=120,
        hourly_rate=12000,
        bio="Relationship counselor focusing on couples therapy and family dynamics.",
        qualifications=["MSc Counseling Psychology", "Marriage & Family Therapist"],
        languages=["English", "Hausa", "Arabic"],
        available_slots=[
            AvailableSlot("2025-08-07", "11:00"),
            AvailableSlot("2025-08-07", "15:00"),
            AvailableSlot("2025-08-08", "13:00"),
        ],
        coordinates={"lat": 12.0022, "lng": 8.5920},
    ),
    Therapist(
        id="4",
        name="Dr. Chinedu Okwu",
        email="chinedu.okwu@mindbridge.ng",
        specialization="Addiction Recovery",
        experience=10,
        state="Rivers",
        city="Port Harcourt",
        rating=4.6,
        completed_sessions=180,
        hourly_rate=16000,
        bio="Addiction specialist with focus on substance abuse and behavioral addictions.",
        qualifications=["PhD Psychology", "Addiction Counselor Certification", "Group Therapy Licensed"],
        languages=["English", "Igbo"],
        available_slots=[
            AvailableSlot("2025-08-05", "12:00"),
            AvailableSlot("2025-08-06", "16:00"),
            AvailableSlot("2025-08-08", "10:00"),
        ],
        coordinates={"lat": 4.8156, "lng": 7.0498},
    ),
]


def sanitize_search(search: str) -> str:
    """Strip everything but word characters and whitespace, lower-cased."""
    return re.sub(r"[^\w\s]", "", search).lower()


def search_therapists(
    catalogue: Sequence[Therapist],
    state: Optional[str] = None,
    specialization: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Therapist]:
    """Filter the catalogue and sort by rating, highest first.

    Args:
        catalogue: Therapists to search
        state: Exact state name
        specialization: Case-insensitive substring of the specialization
        search: Matched against name or bio after sanitizing

    Returns:
        Matching therapists
    """
    results = list(catalogue)

    if state:
        results = [t for t in results if t.state == state]

    if specialization:
        needle = specialization.lower()
        results = [t for t in results if needle in t.specialization.lower()]

    if search:
        needle = sanitize_search(search)
        results = [
            t for t in results
            if needle in t.name.lower() or needle in t.bio.lower()
        ]

    results.sort(key=lambda t: t.rating, reverse=True)
    return results
