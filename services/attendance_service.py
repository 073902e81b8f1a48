# services/attendance_service.py

import logging

from db.extensions import db
from models.timeSlot import TimeSlot
from models.rep import Rep
from models.reservation import Reservation
from models.attendanceRecord import AttendanceRecord
from services.aggregation import attendance_score
from services.errors import NotFoundError, SlotValidationError

logger = logging.getLogger(__name__)


class AttendanceService:

    @staticmethod
    def record_attendance(slot_id, agent_id, attended, reason=None):
        """Append an attendance record for a rep on a slot and refresh their score."""
        if not isinstance(attended, bool):
            raise SlotValidationError("attended must be true or false")

        slot = db.session.get(TimeSlot, slot_id)
        if not slot:
            raise NotFoundError("Slot not found")

        rep = db.session.get(Rep, agent_id)
        if not rep:
            raise NotFoundError("Rep not found")

        holds_slot = slot.rep_id == rep.id or Reservation.query.filter_by(
            slot_id=slot.id, agent_id=rep.id, status='reserved'
        ).first() is not None
        if not holds_slot:
            raise SlotValidationError("Rep has no reservation on this slot")

        record = AttendanceRecord(
            rep_id=rep.id,
            slot_id=slot.id,
            date=slot.date,
            attended=attended,
            reason=reason,
        )
        rep.attendance_history.append(record)
        rep.attendance_score = attendance_score([r.to_dict() for r in rep.attendance_history])
        db.session.commit()

        logger.info(f"✅ Attendance for rep {rep.id} on slot {slot.id}: {attended} (score {rep.attendance_score})")
        return rep
