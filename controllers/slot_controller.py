# controllers/slot_controller.py

from flask import Blueprint, request, jsonify, current_app
from services.slot_generator import SlotGeneratorService
from services.reservation_service import ReservationService
from services.attendance_service import AttendanceService
from services.errors import SchedulingError
from services import aggregation


slot_bp = Blueprint('slots', __name__)


def error_response(error):
    """Turn a SchedulingError into the JSON body callers show to the user."""
    current_app.logger.warning(f"[slots] {request.method} {request.path}: {error.message}")
    return jsonify({'message': error.message}), error.status_code


@slot_bp.route('/slots/generate', methods=['POST'])
def generate_slots():
    """
    Generate slots for a gig over a date range.

    Payload:
    {
      "gigId": "...",          // required
      "startDate": "2024-01-01",
      "endDate": "2024-01-07",
      "slotDuration": 1,       // hours, 0.5 allowed
      "capacity": 2,
      "startHour": 9,          // optional, default 9
      "endHour": 18,           // optional, default 18
      "notes": "..."           // optional
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        message, slots = SlotGeneratorService.generate_slots(payload)
    except SchedulingError as e:
        return error_response(e)

    return jsonify({
        'message': message,
        'slots': [slot.to_dict() for slot in slots]
    }), 201


@slot_bp.route('/slots', methods=['GET'])
def list_slots():
    try:
        slots = ReservationService.get_slots(
            gig_id=request.args.get('gigId'),
            date=request.args.get('date')
        )
    except ValueError as e:
        return jsonify({'message': str(e)}), 400
    return jsonify([slot.to_dict() for slot in slots]), 200


@slot_bp.route('/slots/available', methods=['GET'])
def list_available_slots():
    """Open capacity for a date, optionally limited to one gig."""
    selected_date = request.args.get('date')
    gig_id = request.args.get('gigId')
    if not selected_date:
        return jsonify({'message': 'date is required'}), 400
    try:
        slots = ReservationService.get_slots(gig_id=gig_id, date=selected_date)
    except ValueError as e:
        return jsonify({'message': str(e)}), 400

    pool = aggregation.available_pool([s.to_dict() for s in slots], selected_date, gig_id)
    return jsonify({'count': len(pool), 'slots': pool}), 200


@slot_bp.route('/slots/<slot_id>/reserve', methods=['POST'])
def reserve_slot(slot_id):
    payload = request.get_json(silent=True) or {}
    try:
        reservation = ReservationService.reserve_slot(
            slot_id, payload.get('agentId'), payload.get('notes')
        )
    except SchedulingError as e:
        return error_response(e)

    return jsonify({
        'message': 'Slot reserved',
        'reservation': reservation.to_dict()
    }), 201


@slot_bp.route('/slots/reservations', methods=['GET'])
def list_reservations():
    reservations = ReservationService.get_reservations(
        agent_id=request.args.get('agentId'),
        gig_id=request.args.get('gigId')
    )
    return jsonify([r.to_dict() for r in reservations]), 200


@slot_bp.route('/slots/reservations/<reservation_id>', methods=['DELETE'])
def cancel_reservation(reservation_id):
    try:
        reservation = ReservationService.cancel_reservation(reservation_id)
    except SchedulingError as e:
        return error_response(e)

    return jsonify({
        'message': 'Reservation cancelled',
        'reservation': reservation.to_dict()
    }), 200


@slot_bp.route('/slots/<slot_id>/cancel', methods=['POST'])
def cancel_slot(slot_id):
    try:
        slot = ReservationService.cancel_slot(slot_id)
    except SchedulingError as e:
        return error_response(e)
    return jsonify({'message': 'Slot cancelled', 'slot': slot.to_dict()}), 200


@slot_bp.route('/slots/<slot_id>', methods=['DELETE'])
def delete_slot(slot_id):
    try:
        ReservationService.delete_slot(slot_id)
    except SchedulingError as e:
        return error_response(e)
    return jsonify({'message': 'Slot deleted'}), 200


@slot_bp.route('/slots/<slot_id>/attendance', methods=['POST'])
def record_attendance(slot_id):
    """
    Payload:
    {
      "agentId": "...",
      "attended": true,
      "reason": "..."    // optional
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        rep = AttendanceService.record_attendance(
            slot_id,
            payload.get('agentId'),
            payload.get('attended'),
            payload.get('reason')
        )
    except SchedulingError as e:
        return error_response(e)
    return jsonify({'message': 'Attendance recorded', 'rep': rep.to_dict()}), 200
