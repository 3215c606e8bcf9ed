# Seed data: Users (officers across departments, admin, one citizen)

from passlib.context import CryptContext

from ..models import new_id, now_utc

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# ---------------------------------------------------------------------------
# Raw user definitions
# ---------------------------------------------------------------------------
USERS = [
    # ---- Citizen ----
    {"username": "citizen1", "password": "citizen123",
     "full_name": "Rajesh Kumar Swain", "role": "citizen"},

    # ---- Field officers (level 1) ----
    {"username": "fo_water", "password": "officer123",
     "full_name": "Sri Manas Rout, JE Water Supply", "role": "officer"},
    {"username": "fo_roads", "password": "officer123",
     "full_name": "Smt. Ipsita Nayak, JE Roads", "role": "officer"},
    {"username": "fo_sanitation", "password": "officer123",
     "full_name": "Sri Pradeep Sethi, Sanitation Inspector", "role": "officer"},

    # ---- Nodal officers (level 2) ----
    {"username": "no_water", "password": "officer123",
     "full_name": "Er. Anil Panigrahi, AE Water Supply", "role": "officer"},
    {"username": "no_roads", "password": "officer123",
     "full_name": "Er. Sujata Mohanty, AE Roads", "role": "officer"},
    {"username": "no_health", "password": "officer123",
     "full_name": "Dr. Sasmita Behera, Block Medical Officer", "role": "officer"},

    # ---- Head officers (level 3) ----
    {"username": "ho_water", "password": "officer123",
     "full_name": "Er. Ranjit Mishra, EE Water Supply", "role": "officer"},
    {"username": "ho_roads", "password": "officer123",
     "full_name": "Er. Debashis Swain, EE Roads", "role": "officer"},

    # ---- Admin ----
    {"username": "admin", "password": "admin123",
     "full_name": "System Administrator", "role": "admin"},
]

# ---------------------------------------------------------------------------
# Import function
# ---------------------------------------------------------------------------
def import_users(db) -> dict:
    """Insert seed users into MongoDB. Returns {username: _id} mapping."""
    print("\n  Importing seed users...")
    user_ids = {}
    for u in USERS:
        uid = new_id()
        db.users.insert_one({
            "_id": uid,
            "username": u["username"],
            "hashed_password": pwd_context.hash(u["password"]),
            "full_name": u["full_name"],
            "role": u["role"],
            "created_at": now_utc(),
        })
        user_ids[u["username"]] = uid
        print(f"    {u['username']:20s}  ({u['role']})")
    db.users.create_index([("username", 1)], unique=True)
    print(f"  => {len(USERS)} users created")
    return user_ids
