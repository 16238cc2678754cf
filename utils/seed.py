from models import db
from models.user import Role
from security.rbac import ALL_ROLES


def seed_roles():
    """Insert any missing role rows. Safe to call on every start."""
    existing = {name for (name,) in db.session.query(Role.name).all()}
    missing = [name for name in ALL_ROLES if name not in existing]
    if missing:
        db.session.add_all(Role(name=name) for name in missing)
        db.session.commit()


def grant_role(user, role_name: str) -> bool:
    """Returns False when the user already had the role."""
    role = Role.query.filter_by(name=role_name).first()
    if role is None:
        role = Role(name=role_name)
        db.session.add(role)
    if role in user.roles:
        return False
    user.roles.append(role)
    db.session.commit()
    return True
