from typing import Any, Dict

from mindbridge.app.db.models import User


def serialize_user(user: User) -> Dict[str, Any]:
    """Serialize a user to a JSON-safe dict without the password hash.

    FastAPI can't serialize SQLAlchemy ORM objects by default, so routers
    return this dict instead.
    """
    data: Dict[str, Any] = {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "phone": user.phone,
        "state": user.state,
        "city": user.city,
        "bio": user.bio,
        "isVerified": user.is_verified,
        "isActive": user.is_active,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "updatedAt": user.updated_at.isoformat() if user.updated_at else None,
    }
    if user.is_therapist:
        data.update({
            "license": user.license,
            "specialization": user.specialization,
            "experience": user.experience,
            "verifiedAt": user.verified_at.isoformat() if user.verified_at else None,
        })
    return data
