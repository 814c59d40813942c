from SpendWise.models import Admin
from SpendWise.database import db

def create_admin(username, email, password, role='support', full_name=None):
    new_admin = Admin(username, email, password, role=role, full_name=full_name)
    db.session.add(new_admin)
    db.session.commit()
    return new_admin
