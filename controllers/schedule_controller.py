# controllers/schedule_controller.py

from flask import Blueprint, request, jsonify
from db.extensions import db
from models.company import Company
from models.gig import Gig
from models.rep import Rep
from models.timeSlot import TimeSlot
from services import aggregation
from services.calendar_service import month_grid, week_strip, week_bounds
from services.utils import parse_date, parse_optional_date, facility_today


schedule_bp = Blueprint('schedule', __name__)


def _slot_snapshot(gig_ids=None, start_date=None, end_date=None, slot_date=None):
    """Fresh slot dicts from the store; views never patch earlier copies."""
    query = TimeSlot.query
    if gig_ids is not None:
        query = query.filter(TimeSlot.gig_id.in_(gig_ids))
    if slot_date:
        query = query.filter(TimeSlot.date == slot_date)
    if start_date:
        query = query.filter(TimeSlot.date >= start_date)
    if end_date:
        query = query.filter(TimeSlot.date <= end_date)
    return [slot.to_dict() for slot in query.order_by(TimeSlot.date, TimeSlot.start_time).all()]


def _parse_month(value):
    if not value:
        return None
    return parse_date(f"{value}-01" if len(value) == 7 else value, 'month')


@schedule_bp.route('/companies/<company_id>/schedule', methods=['GET'])
def company_schedule(company_id):
    company = db.session.get(Company, company_id)
    if not company:
        return jsonify({'message': 'Company not found'}), 404
    try:
        selected_date = parse_optional_date(request.args.get('date')) or facility_today()
    except ValueError as e:
        return jsonify({'message': str(e)}), 400

    gigs = [gig.to_dict() for gig in company.gigs]
    slots = _slot_snapshot(gig_ids=[g['id'] for g in gigs], slot_date=selected_date)
    reps = [rep.to_dict() for rep in Rep.query.all()]

    schedule = aggregation.company_schedule(company.id, slots, gigs, reps, selected_date)
    schedule['companyName'] = company.name
    return jsonify(schedule), 200


@schedule_bp.route('/reports/reps', methods=['GET'])
def rep_report():
    gig_id = request.args.get('gigId')
    slots = _slot_snapshot(gig_ids=[gig_id] if gig_id else None)
    reps = [rep.to_dict() for rep in Rep.query.order_by(Rep.name).all()]
    return jsonify(aggregation.rep_overview(reps, slots)), 200


@schedule_bp.route('/reports/companies', methods=['GET'])
def company_report():
    companies = [c.to_dict() for c in Company.query.order_by(Company.name).all()]
    gigs = [g.to_dict() for g in Gig.query.all()]
    return jsonify(aggregation.company_overview(companies, gigs, _slot_snapshot())), 200


@schedule_bp.route('/reports/weekly', methods=['GET'])
def weekly_report():
    """Stats for the Sunday-starting week containing ``startDate`` (default today)."""
    gig_id = request.args.get('gigId')
    agent_id = request.args.get('agentId')
    try:
        anchor = parse_optional_date(request.args.get('startDate')) or facility_today()
    except ValueError as e:
        return jsonify({'message': str(e)}), 400

    start_date, end_date = week_bounds(anchor)
    slots = _slot_snapshot(
        gig_ids=[gig_id] if gig_id else None, start_date=start_date, end_date=end_date
    )
    stats = aggregation.weekly_stats(slots, start_date, end_date, agent_id=agent_id)
    stats.update({'startDate': start_date.isoformat(), 'endDate': end_date.isoformat()})
    return jsonify(stats), 200


@schedule_bp.route('/calendar', methods=['GET'])
def calendar_view():
    gig_id = request.args.get('gigId')
    try:
        today = facility_today()
        selected_date = parse_optional_date(request.args.get('selectedDate'), 'selectedDate') or today
        month = _parse_month(request.args.get('month'))
    except ValueError as e:
        return jsonify({'message': str(e)}), 400

    slots = _slot_snapshot(gig_ids=[gig_id] if gig_id else None)
    grid = month_grid(selected_date, slots, month=month, today=today)
    grid['week'] = week_strip(selected_date, slots, today=today)
    return jsonify(grid), 200


@schedule_bp.route('/heatmap', methods=['GET'])
def heatmap():
    gig_id = request.args.get('gigId')
    try:
        start_date = parse_optional_date(request.args.get('startDate'), 'startDate')
        end_date = parse_optional_date(request.args.get('endDate'), 'endDate')
    except ValueError as e:
        return jsonify({'message': str(e)}), 400

    slots = _slot_snapshot(
        gig_ids=[gig_id] if gig_id else None, start_date=start_date, end_date=end_date
    )
    return jsonify(aggregation.availability_heatmap(slots, gig_id)), 200


@schedule_bp.route('/reps/<rep_id>/recommendations', methods=['GET'])
def rep_recommendations(rep_id):
    rep = db.session.get(Rep, rep_id)
    if not rep:
        return jsonify({'message': 'Rep not found'}), 404
    gig_id = request.args.get('gigId')
    try:
        selected_date = parse_optional_date(request.args.get('date')) or facility_today()
        limit = max(int(request.args.get('limit', 3)), 1)
    except ValueError as e:
        return jsonify({'message': str(e)}), 400

    slots = _slot_snapshot(gig_ids=[gig_id] if gig_id else None, slot_date=selected_date)
    recommendations = aggregation.recommend_hours(
        rep.to_dict(), slots, selected_date, gig_id=gig_id, limit=limit
    )
    return jsonify({
        'repId': rep.id,
        'date': selected_date.isoformat(),
        'recommendations': recommendations
    }), 200
