"""
User model - volunteers and administrators who can hold patrol shifts
"""
from datetime import datetime


def create_user_model(db):
    """Factory function to create User model with db instance"""

    class User(db.Model):
        """
        User model representing a patrol volunteer or administrator

        Attributes:
            id: Unique user identifier
            name: Full name
            phone: Contact phone number (unique when present)
            role: admin, owl (volunteer) or guest
            created_at: When the user was registered
        """
        __tablename__ = 'users'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        name = db.Column(db.String(100), nullable=False)
        phone = db.Column(db.String(20), unique=True, nullable=True)
        role = db.Column(db.String(20), nullable=False, default='owl')
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        recurring_assignments = db.relationship(
            'RecurringAssignment',
            back_populates='user',
            cascade='all, delete-orphan',
            lazy=True
        )

        VALID_ROLES = ['admin', 'owl', 'guest']

        def to_dict(self):
            """Convert user to dictionary for JSON serialization"""
            return {
                'id': self.id,
                'name': self.name,
                'phone': self.phone,
                'role': self.role,
                'created_at': self.created_at.isoformat() if self.created_at else None
            }

        def __repr__(self):
            return f'<User {self.id}: {self.name}>'

    return User
