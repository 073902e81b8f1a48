# services/reservation_service.py

import logging
from datetime import datetime
from threading import Thread

from flask import current_app
from flask_mail import Message
from sqlalchemy import update, case, cast
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from db.extensions import db, mail
from models.timeSlot import TimeSlot
from models.reservation import Reservation
from models.rep import Rep
from services.errors import CapacityConflictError, NotFoundError, SlotValidationError
from services.utils import parse_optional_date, format_hhmm

logger = logging.getLogger(__name__)

# CASE yields text on PostgreSQL; cast back to the enum column type
SLOT_STATUS_TYPE = TimeSlot.__table__.c.status.type

DUPLICATE_RESERVATION_MESSAGE = "Agent already holds a reservation on this slot"


def send_async_email(app, msg):
    """Send email in a background thread."""
    with app.app_context():
        try:
            mail.send(msg)
            app.logger.info("✅ Reservation email sent")
        except Exception as e:
            app.logger.error(f"❌ Failed to send reservation email: {str(e)}")


class ReservationService:

    @staticmethod
    def get_slots(gig_id=None, date=None):
        query = TimeSlot.query
        if gig_id:
            query = query.filter(TimeSlot.gig_id == gig_id)
        slot_date = parse_optional_date(date)
        if slot_date:
            query = query.filter(TimeSlot.date == slot_date)
        return query.order_by(TimeSlot.date, TimeSlot.start_time).all()

    @staticmethod
    def get_reservations(agent_id=None, gig_id=None):
        query = Reservation.query
        if agent_id:
            query = query.filter(Reservation.agent_id == agent_id)
        if gig_id:
            query = query.filter(Reservation.gig_id == gig_id)
        return query.order_by(Reservation.date, Reservation.start_time).all()

    @staticmethod
    def holds_active_reservation(slot_id, agent_id):
        return Reservation.query.filter_by(
            slot_id=slot_id, agent_id=agent_id, status='reserved'
        ).first() is not None

    @staticmethod
    def reserve_slot(slot_id, agent_id, notes=None):
        """
        Claim one unit of capacity on a slot.

        The occupancy check and increment are one conditional UPDATE, so two
        concurrent callers can never both take the last unit.
        """
        if not agent_id or not str(agent_id).strip():
            raise SlotValidationError("agentId is required")
        agent_id = str(agent_id).strip()

        slot = db.session.get(TimeSlot, slot_id)
        if not slot:
            raise NotFoundError("Slot not found")

        if ReservationService.holds_active_reservation(slot_id, agent_id):
            raise CapacityConflictError(DUPLICATE_RESERVATION_MESSAGE)

        try:
            result = db.session.execute(
                update(TimeSlot)
                .where(
                    TimeSlot.id == slot_id,
                    TimeSlot.status != 'cancelled',
                    TimeSlot.reserved_count < TimeSlot.capacity,
                )
                .values(
                    reserved_count=TimeSlot.reserved_count + 1,
                    status=cast(case(
                        (TimeSlot.reserved_count + 1 >= TimeSlot.capacity, 'full'),
                        else_='available',
                    ), SLOT_STATUS_TYPE),
                )
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                db.session.rollback()
                db.session.refresh(slot)
                if slot.status == 'cancelled':
                    raise CapacityConflictError("Slot is cancelled")
                raise CapacityConflictError("Slot is full")

            reservation = Reservation(
                agent_id=agent_id,
                slot_id=slot.id,
                gig_id=slot.gig_id,
                date=slot.date,
                start_time=slot.start_time,
                end_time=slot.end_time,
                duration=slot.duration,
                status='reserved',
                notes=notes.strip() if isinstance(notes, str) and notes.strip() else None,
            )
            db.session.add(reservation)
            db.session.commit()
        except IntegrityError:
            # A concurrent request by the same agent won the unique index
            db.session.rollback()
            raise CapacityConflictError(DUPLICATE_RESERVATION_MESSAGE)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"❌ Reservation failed for slot {slot_id}: {e}")
            raise

        db.session.refresh(slot)
        logger.info(
            f"✅ Agent {agent_id} reserved slot {slot.id} "
            f"({slot.reserved_count}/{slot.capacity}, {slot.status})"
        )
        ReservationService.notify_reservation(reservation)
        return reservation

    @staticmethod
    def cancel_reservation(reservation_id):
        """Soft-cancel a reservation and release its unit of capacity."""
        reservation = db.session.get(Reservation, reservation_id)
        if not reservation:
            raise NotFoundError("Reservation not found")

        try:
            result = db.session.execute(
                update(Reservation)
                .where(Reservation.id == reservation_id, Reservation.status == 'reserved')
                .values(status='cancelled', cancelled_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.session.rollback()
                raise CapacityConflictError("Reservation is already cancelled")

            db.session.execute(
                update(TimeSlot)
                .where(TimeSlot.id == reservation.slot_id, TimeSlot.reserved_count > 0)
                .values(
                    reserved_count=TimeSlot.reserved_count - 1,
                    status=cast(case(
                        (TimeSlot.status == 'cancelled', 'cancelled'),
                        else_='available',
                    ), SLOT_STATUS_TYPE),
                )
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"❌ Cancellation failed for reservation {reservation_id}: {e}")
            raise

        db.session.refresh(reservation)
        if reservation.slot is not None:
            db.session.refresh(reservation.slot)
        logger.info(f"✅ Reservation {reservation_id} cancelled")
        return reservation

    @staticmethod
    def cancel_slot(slot_id):
        """Mark a slot cancelled. Its reservations keep their records."""
        slot = db.session.get(TimeSlot, slot_id)
        if not slot:
            raise NotFoundError("Slot not found")
        if slot.status == 'cancelled':
            raise CapacityConflictError("Slot is already cancelled")

        slot.status = 'cancelled'
        db.session.commit()
        logger.info(f"✅ Slot {slot_id} cancelled ({slot.reserved_count} active reservations)")
        return slot

    @staticmethod
    def delete_slot(slot_id):
        """
        Remove unreserved capacity. There is no undo.

        Slots with active reservations are refused; cancel them instead.
        Cancelled reservations stay on record with their slot reference cleared.
        """
        slot = db.session.get(TimeSlot, slot_id)
        if not slot:
            raise NotFoundError("Slot not found")

        if slot.reserved_count > 0:
            logger.warning(f"⚠️  Refusing to delete slot {slot_id} with {slot.reserved_count} active reservations")
            raise CapacityConflictError(
                "Slot has active reservations; cancel the slot instead of deleting it"
            )
        try:
            db.session.delete(slot)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"❌ Failed to delete slot {slot_id}: {e}")
            raise
        logger.info(f"✅ Slot {slot_id} deleted")

    @staticmethod
    def notify_reservation(reservation):
        """Email the rep a confirmation; does nothing when disabled or unknown rep."""
        if not current_app.config.get('RESERVATION_EMAILS_ENABLED'):
            return False

        rep = db.session.get(Rep, reservation.agent_id)
        if not rep or not rep.email:
            current_app.logger.info(f"No email on file for agent {reservation.agent_id}")
            return False

        msg = Message(
            subject=f"Session reserved - {reservation.date.isoformat()}",
            recipients=[rep.email],
            sender=current_app.config['MAIL_DEFAULT_SENDER']
        )
        msg.body = (
            f"Hi {rep.name},\n\n"
            f"Your session on {reservation.date.isoformat()} from "
            f"{format_hhmm(reservation.start_time)} to {format_hhmm(reservation.end_time)} "
            f"is confirmed.\n"
        )
        if reservation.notes:
            msg.body += f"\nNotes: {reservation.notes}\n"

        Thread(
            target=send_async_email,
            args=(current_app._get_current_object(), msg)
        ).start()
        return True
