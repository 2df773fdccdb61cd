"""
User Service
Volunteer records and guarded deletion
"""
from typing import List, Optional
from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from patrol_scheduler.error_handlers.exceptions import (
    ConflictException, ResourceNotFoundException, ValidationException
)
from patrol_scheduler.services.booking_service import BookingService


class UserService:
    """Manages patrol volunteers"""

    def __init__(self, db_session: Session, models: dict):
        self.db = db_session
        self.User = models['User']
        self.booking_service = BookingService(db_session, models)

    def get(self, user_id: int) -> object:
        user = self.db.get(self.User, user_id)
        if not user:
            raise ResourceNotFoundException(f'User {user_id} not found')
        return user

    def list(self, role: Optional[str] = None) -> List[object]:
        query = self.db.query(self.User)
        if role:
            query = query.filter(self.User.role == role)
        return query.order_by(self.User.name, self.User.id).all()

    def create(self, name: str, phone: Optional[str] = None, role: str = 'owl') -> object:
        """
        Register a user

        Raises:
            ValidationException: Missing name or unknown role
            ConflictException: Phone number already registered
        """
        if not name or not str(name).strip():
            raise ValidationException('User name is required')
        if role not in self.User.VALID_ROLES:
            raise ValidationException(
                f"Invalid role '{role}'. Must be one of: {', '.join(self.User.VALID_ROLES)}"
            )

        phone = str(phone).strip() if phone else None
        if phone and self.db.query(self.User).filter_by(phone=phone).first():
            raise ConflictException(f'Phone number {phone} is already registered')

        user = self.User(name=str(name).strip(), phone=phone, role=role)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictException(f'Phone number {phone} is already registered') from e

        current_app.logger.info(f"Created user {user.id}: {user.name} ({user.role})")
        return user

    def delete(self, user_id: int, cascade: bool = False) -> dict:
        """
        Delete a user and their recurring assignments

        Past bookings stay as history without a user; live future bookings
        block the deletion unless cascade is set.

        Raises:
            CascadeBlocked: Live future bookings exist and cascade is False
        """
        user = self.get(user_id)
        template_ids = [t.id for t in user.recurring_assignments]

        cancelled = self.booking_service.release_for_deletion(user_id=user_id, cascade=cascade)
        self.booking_service.clear_provenance(template_ids)
        self.db.delete(user)
        self.db.commit()

        current_app.logger.info(
            f"Deleted user {user_id} ({len(template_ids)} templates, {cancelled} bookings cancelled)"
        )
        return {
            'deleted_templates': len(template_ids),
            'cancelled_bookings': cancelled
        }
