# controllers/directory_controller.py

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from db.extensions import db
from models.company import Company
from models.gig import Gig
from models.rep import Rep
from services.utils import validate_json

directory_bp = Blueprint('directory', __name__)

GIG_PRIORITIES = ('low', 'medium', 'high')


def _save(instance, label):
    """Persist a new record; returns an error response when the id is taken."""
    try:
        db.session.add(instance)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'message': f"{label.capitalize()} already exists"}), 409
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"❌ Failed to create {label}: {e}")
        raise
    current_app.logger.info(f"✅ Created {label} {instance.id}")
    return None


@directory_bp.route('/companies', methods=['POST'])
def create_company():
    data = request.get_json(silent=True) or {}
    missing = validate_json(data, ['name'])
    if missing:
        return jsonify({'message': f"Missing fields: {', '.join(missing)}"}), 400

    company = Company(name=data['name'], priority=data.get('priority'))
    if data.get('id'):
        company.id = str(data['id'])
    error = _save(company, 'company')
    if error:
        return error
    return jsonify(company.to_dict()), 201


@directory_bp.route('/companies', methods=['GET'])
def list_companies():
    companies = Company.query.order_by(Company.name).all()
    return jsonify([c.to_dict() for c in companies]), 200


@directory_bp.route('/gigs', methods=['POST'])
def create_gig():
    data = request.get_json(silent=True) or {}
    missing = validate_json(data, ['name', 'companyId'])
    if missing:
        return jsonify({'message': f"Missing fields: {', '.join(missing)}"}), 400

    if not db.session.get(Company, data['companyId']):
        return jsonify({'message': 'Company not found'}), 404

    priority = data.get('priority', 'medium')
    if priority not in GIG_PRIORITIES:
        return jsonify({'message': f"priority must be one of {', '.join(GIG_PRIORITIES)}"}), 400

    gig = Gig(
        company_id=data['companyId'],
        name=data['name'],
        description=data.get('description'),
        color=data.get('color'),
        skills=data.get('skills') or [],
        priority=priority,
    )
    if data.get('id'):
        gig.id = str(data['id'])
    error = _save(gig, 'gig')
    if error:
        return error
    return jsonify(gig.to_dict()), 201


@directory_bp.route('/gigs', methods=['GET'])
def list_gigs():
    # companyId is explicit; there is no "current company" on the server
    query = Gig.query
    company_id = request.args.get('companyId')
    if company_id:
        query = query.filter_by(company_id=company_id)
    return jsonify([g.to_dict() for g in query.order_by(Gig.name).all()]), 200


@directory_bp.route('/reps', methods=['POST'])
def create_rep():
    data = request.get_json(silent=True) or {}
    missing = validate_json(data, ['name', 'email'])
    if missing:
        return jsonify({'message': f"Missing fields: {', '.join(missing)}"}), 400

    preferred = data.get('preferredHours') or {}
    start, end = preferred.get('start'), preferred.get('end')
    has_window = start is not None or end is not None
    if has_window and not (isinstance(start, int) and isinstance(end, int) and 0 <= start < end <= 24):
        return jsonify({'message': 'preferredHours must have 0 <= start < end <= 24'}), 400

    rep = Rep(
        name=data['name'],
        email=data['email'],
        avatar=data.get('avatar'),
        specialties=data.get('specialties') or [],
        performance_score=data.get('performanceScore'),
        preferred_start_hour=start,
        preferred_end_hour=end,
    )
    if data.get('id'):
        rep.id = str(data['id'])
    error = _save(rep, 'rep')
    if error:
        return error
    return jsonify(rep.to_dict()), 201


@directory_bp.route('/reps', methods=['GET'])
def list_reps():
    reps = Rep.query.order_by(Rep.name).all()
    return jsonify([r.to_dict() for r in reps]), 200


@directory_bp.route('/reps/<rep_id>', methods=['GET'])
def get_rep(rep_id):
    rep = db.session.get(Rep, rep_id)
    if not rep:
        return jsonify({'message': 'Rep not found'}), 404
    return jsonify(rep.to_dict()), 200
