# services/slot_generator.py

import logging
import math
import uuid
from collections import defaultdict
from datetime import timedelta

from flask import current_app
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from db.extensions import db, redis_client
from models.gig import Gig
from models.timeSlot import TimeSlot
from services.errors import SlotValidationError, NotFoundError, CapacityConflictError
from services.utils import parse_date, minutes_of, time_from_minutes

logger = logging.getLogger(__name__)

DEFAULT_START_HOUR = 9
DEFAULT_END_HOUR = 18
MAX_GENERATION_DAYS = 180


def _as_number(value, message):
    if isinstance(value, bool) or value in (None, ''):
        raise SlotValidationError(message)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise SlotValidationError(message)
    if not math.isfinite(number):
        raise SlotValidationError(message)
    return number


def _as_hour(value, default, field_name):
    if value in (None, ''):
        return default
    number = _as_number(value, f"{field_name} must be a whole hour between 0 and 23")
    if number != int(number) or not 0 <= number <= 23:
        raise SlotValidationError(f"{field_name} must be a whole hour between 0 and 23")
    return int(number)


def acquire_generation_lock(lock_key, lock_seconds):
    """
    Take the per-gig generation lock and return its token.

    Returns None when Redis is unreachable; generation then runs unlocked and
    the unique slot window constraint still rejects duplicate rows.
    """
    token = str(uuid.uuid4())
    try:
        acquired = redis_client.set(lock_key, token, nx=True, ex=lock_seconds)
    except RedisError as e:
        logger.warning(f"⚠️  Generation lock unavailable, continuing without it: {e}")
        return None
    if not acquired:
        raise CapacityConflictError("Slot generation already in progress for this gig")
    return token


def release_generation_lock(lock_key, token):
    """Delete the lock only while it still holds this run's token."""
    if token is None:
        return
    try:
        if redis_client.get(lock_key) == token:
            redis_client.delete(lock_key)
    except RedisError as e:
        logger.warning(f"⚠️  Could not release generation lock {lock_key}: {e}")


class SlotGeneratorService:

    @staticmethod
    def validate_params(params, max_days=MAX_GENERATION_DAYS,
                        default_hours=(DEFAULT_START_HOUR, DEFAULT_END_HOUR)):
        """
        Check a generation request locally, before touching the store.

        Accepts the wire payload (``gigId``, ``startDate``, ``endDate``,
        ``slotDuration``, ``capacity``, ``startHour``, ``endHour``, ``notes``)
        and returns the normalized parameters. Raises SlotValidationError.
        """
        gig_id = params.get('gigId')
        if not gig_id or not str(gig_id).strip():
            raise SlotValidationError("gig required")

        if not params.get('startDate') or not params.get('endDate'):
            raise SlotValidationError("start and end dates are required")
        try:
            start_date = parse_date(params.get('startDate'), 'startDate')
            end_date = parse_date(params.get('endDate'), 'endDate')
        except ValueError as e:
            raise SlotValidationError(str(e))

        if end_date < start_date:
            raise SlotValidationError("end date must be after start date")

        start_hour = _as_hour(params.get('startHour'), default_hours[0], 'startHour')
        end_hour = _as_hour(params.get('endHour'), default_hours[1], 'endHour')
        if start_hour >= end_hour:
            raise SlotValidationError("end hour must be after start hour")

        positive_message = "duration and capacity must be greater than 0"
        slot_duration = _as_number(params.get('slotDuration'), positive_message)
        capacity = _as_number(params.get('capacity'), positive_message)
        if slot_duration <= 0 or capacity < 1:
            raise SlotValidationError(positive_message)
        if capacity != int(capacity):
            raise SlotValidationError("capacity must be a whole number")

        duration_minutes = slot_duration * 60
        if duration_minutes != int(duration_minutes):
            raise SlotValidationError("slot duration must be a whole number of minutes")
        if duration_minutes > (end_hour - start_hour) * 60:
            raise SlotValidationError("slot duration does not fit between start and end hour")

        if (end_date - start_date).days + 1 > max_days:
            raise SlotValidationError(f"date range cannot exceed {max_days} days")

        notes = params.get('notes')
        return {
            'gig_id': str(gig_id).strip(),
            'start_date': start_date,
            'end_date': end_date,
            'slot_duration': slot_duration,
            'capacity': int(capacity),
            'start_hour': start_hour,
            'end_hour': end_hour,
            'notes': notes.strip() if isinstance(notes, str) and notes.strip() else None,
        }

    @staticmethod
    def build_blocks(start_hour, end_hour, slot_duration):
        """(start_minute, end_minute) blocks stepping by the slot duration."""
        step = int(round(slot_duration * 60))
        window_end = end_hour * 60
        blocks = []
        current = start_hour * 60
        while current + step <= window_end:
            blocks.append((current, current + step))
            current += step
        return blocks

    @staticmethod
    def build_grid(normalized):
        """Every (date, start_minute, end_minute) in the generation window."""
        blocks = SlotGeneratorService.build_blocks(
            normalized['start_hour'], normalized['end_hour'], normalized['slot_duration']
        )
        grid = []
        current = normalized['start_date']
        while current <= normalized['end_date']:
            for start_minute, end_minute in blocks:
                grid.append((current, start_minute, end_minute))
            current += timedelta(days=1)
        return grid

    @staticmethod
    def generate_slots(params):
        """
        Bulk-create the slot grid for a gig, skipping blocks that overlap an
        existing slot of the same gig. Returns (message, created_slots).
        """
        normalized = SlotGeneratorService.validate_params(
            params,
            max_days=current_app.config.get('MAX_GENERATION_DAYS', MAX_GENERATION_DAYS),
            default_hours=(
                current_app.config.get('DEFAULT_START_HOUR', DEFAULT_START_HOUR),
                current_app.config.get('DEFAULT_END_HOUR', DEFAULT_END_HOUR),
            ),
        )

        gig = db.session.get(Gig, normalized['gig_id'])
        if not gig:
            raise NotFoundError("Gig not found")

        lock_key = f"slot_generation:{gig.id}"
        lock_seconds = current_app.config.get('GENERATION_LOCK_SECONDS', 60)
        lock_token = acquire_generation_lock(lock_key, lock_seconds)

        try:
            existing = TimeSlot.query.filter(
                TimeSlot.gig_id == gig.id,
                TimeSlot.date >= normalized['start_date'],
                TimeSlot.date <= normalized['end_date'],
            ).all()

            taken = defaultdict(list)
            for slot in existing:
                taken[slot.date].append((minutes_of(slot.start_time), minutes_of(slot.end_time)))

            created = []
            skipped = 0
            for day, start_minute, end_minute in SlotGeneratorService.build_grid(normalized):
                if any(start_minute < busy_end and busy_start < end_minute
                       for busy_start, busy_end in taken[day]):
                    skipped += 1
                    continue

                slot = TimeSlot(
                    gig_id=gig.id,
                    date=day,
                    start_time=time_from_minutes(start_minute),
                    end_time=time_from_minutes(end_minute),
                    duration=(end_minute - start_minute) / 60,
                    capacity=normalized['capacity'],
                    reserved_count=0,
                    status='available',
                    notes=normalized['notes'],
                )
                db.session.add(slot)
                taken[day].append((start_minute, end_minute))
                created.append(slot)

            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.warning(f"⚠️  Overlapping generation run for gig {gig.id}, nothing created")
            raise CapacityConflictError("Slots for this gig were generated concurrently; please retry")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"❌ Slot generation failed for gig {gig.id}: {e}")
            raise
        finally:
            release_generation_lock(lock_key, lock_token)

        logger.info(f"✅ Generated {len(created)} slots for gig {gig.id} ({skipped} skipped)")

        message = f"{len(created)} slots generated for {gig.name}"
        if skipped:
            message += f" ({skipped} skipped, already scheduled)"
        return message, created
