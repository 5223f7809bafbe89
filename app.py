"""Flask web application for the SkillFund client."""

import os
import logging
from datetime import date, datetime
from functools import wraps

from flask import Flask, render_template, request, jsonify, session, redirect, url_for, flash, g, abort

from config import LOG_LEVEL, SUPABASE_URL
from skillfund.models import UserRole
from skillfund.services.backend import BackendClient, BackendError
from skillfund.services.auth_service import AuthService, AuthServiceError
from skillfund.services.profile_service import ProfileService, ProfileServiceError, parse_profile_form
from skillfund.services.job_service import (
    ALL_CATEGORIES,
    JOB_CATEGORIES,
    JobService,
    JobServiceError,
    filter_jobs,
    format_budget,
    parse_job_form,
    parse_proposal_form,
)
from skillfund.services.campaign_service import (
    CAMPAIGN_CATEGORIES,
    CampaignService,
    CampaignServiceError,
    calculate_progress,
    filter_campaigns,
    format_amount,
    parse_backing_form,
    parse_campaign_form,
    time_left,
)
from skillfund.services.message_service import MessageService, MessageServiceError
from skillfund.services.dashboard_service import DashboardService
from skillfund.services.validation import ValidationError

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'skillfund-dev-secret-key')

NAV_ITEMS = [
    ('Home', 'dashboard'),
    ('Find Work', 'jobs'),
    ('Projects', 'campaigns'),
    ('Messages', 'messages'),
    ('Profile', 'profile'),
]

ROLE_OPTIONS = [(role.value, role.label) for role in UserRole]

FEATURES = [
    ('briefcase', 'Freelance Marketplace', 'Find talented freelancers or discover your next opportunity'),
    ('heart', 'Crowdfunding Platform', 'Launch campaigns or back innovative projects'),
    ('users', 'Global Community', 'Connect with creators and professionals worldwide'),
    ('dollar', 'Secure Payments', 'Safe and reliable payment processing'),
]


def _backend():
    """Backend client acting as the signed-in user."""
    return BackendClient.get_instance().with_token(session.get('access_token'))


def _is_api():
    return request.path.startswith('/api/')


def _store_session(auth_session):
    session['user_id'] = auth_session.user_id
    session['email'] = auth_session.email
    session['access_token'] = auth_session.access_token
    session['refresh_token'] = auth_session.refresh_token
    session.permanent = True


def _token_expired(error):
    cause = error.__cause__
    return isinstance(cause, BackendError) and cause.status_code == 401


def _load_profile():
    """Profile of the signed-in user, renewing an expired access token once.

    Raises:
        AuthServiceError: If the session cannot be renewed
    """
    try:
        return ProfileService(backend=_backend()).get_profile(session['user_id'])
    except ProfileServiceError as e:
        if not _token_expired(e):
            return None
    _store_session(AuthService().refresh(session.get('refresh_token')))
    logger.info("Refreshed session for %s", session['user_id'])
    try:
        return ProfileService(backend=_backend()).get_profile(session['user_id'])
    except ProfileServiceError:
        return None


def login_required(f):
    """Decorator to require login; loads the user's profile into g.profile."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not session.get('user_id'):
            if _is_api():
                return jsonify({'error': 'Authentication required'}), 401
            return redirect(url_for('auth'))
        if 'profile' not in g:
            try:
                g.profile = _load_profile()
            except AuthServiceError:
                session.clear()
                if _is_api():
                    return jsonify({'error': 'Session expired'}), 401
                flash('Your session has expired. Please sign in again.', 'error')
                return redirect(url_for('auth'))
        return f(*args, **kwargs)
    return decorated_function


def role_required(*roles):
    """Decorator limiting a login-protected view to the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            profile = g.get('profile')
            if profile is None or not profile.has_role(*roles):
                if _is_api():
                    return jsonify({'error': 'Forbidden'}), 403
                if profile is None or profile.primary_role is None:
                    flash('Complete your profile to continue.', 'error')
                    return redirect(url_for('profile'))
                flash('You do not have access to that page.', 'error')
                return redirect(url_for('dashboard'))
            return f(*args, **kwargs)
        return login_required(decorated_function)
    return decorator


@app.context_processor
def inject_layout():
    return {
        'profile': g.get('profile'),
        'nav_items': NAV_ITEMS,
        'UserRole': UserRole,
    }


@app.template_filter('budget')
def budget_filter(job):
    return format_budget(job.budget_min, job.budget_max)


@app.template_filter('amount')
def amount_filter(value):
    return format_amount(value)


@app.template_filter('progress')
def progress_filter(campaign):
    return round(calculate_progress(campaign.current_amount, campaign.goal_amount), 1)


@app.template_filter('time_left')
def time_left_filter(deadline):
    return time_left(deadline)


@app.template_filter('short_date')
def short_date_filter(value):
    if not value:
        return ''
    try:
        parsed = date.fromisoformat(value[:10])
    except ValueError:
        return value
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


@app.template_filter('clock')
def clock_filter(value):
    if not value:
        return ''
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00')).strftime('%H:%M')
    except ValueError:
        return ''


@app.after_request
def log_request(response):
    logger.info("%s %s -> %s", request.method, request.path, response.status_code)
    return response


@app.errorhandler(404)
def not_found(e):
    if _is_api():
        return jsonify({'error': 'Not found'}), 404
    return render_template('not_found.html'), 404


# ---------------------------------------------------------------------------
# Landing and auth
# ---------------------------------------------------------------------------

@app.route('/')
def index():
    """Render the landing page."""
    if session.get('user_id'):
        return redirect(url_for('dashboard'))
    return render_template('index.html', features=FEATURES)


@app.route('/auth', methods=['GET', 'POST'])
def auth():
    """Handle login and sign-up."""
    if session.get('user_id'):
        return redirect(url_for('dashboard'))

    mode = request.values.get('mode', 'login')
    if mode not in ('login', 'signup'):
        mode = 'login'
    if request.method == 'GET':
        return render_template('auth.html', mode=mode, errors={}, form={})

    service = AuthService()
    try:
        if mode == 'signup':
            auth_session = service.sign_up(
                request.form.get('email', ''),
                request.form.get('password', ''),
                request.form.get('full_name', ''),
                request.form.get('primary_role', ''),
            )
            if not auth_session.access_token:
                flash('Check your email to confirm your account, then sign in.', 'success')
                return redirect(url_for('auth', mode='login'))
        else:
            auth_session = service.sign_in(
                request.form.get('email', ''),
                request.form.get('password', ''),
            )
    except ValidationError as e:
        return render_template('auth.html', mode=mode, errors=e.errors, form=request.form), 400
    except AuthServiceError as e:
        flash(str(e), 'error')
        return render_template('auth.html', mode=mode, errors={}, form=request.form), 401

    session.clear()
    _store_session(auth_session)
    return redirect(url_for('dashboard'))


@app.route('/logout')
def logout():
    """Handle logout."""
    AuthService().sign_out(session.get('access_token'))
    session.clear()
    return redirect(url_for('index'))


@app.route('/dashboard')
@login_required
def dashboard():
    content = DashboardService(backend=_backend()).build(g.profile)
    return render_template('dashboard.html', content=content)


# ---------------------------------------------------------------------------
# Jobs and proposals
# ---------------------------------------------------------------------------

def _render_jobs(errors=None, form=None, status=200):
    search = request.args.get('q', '')
    category = request.args.get('category', ALL_CATEGORIES)
    try:
        jobs = JobService(backend=_backend()).list_open_jobs()
        error = None
    except JobServiceError as e:
        jobs, error = [], str(e)
    return render_template(
        'jobs.html',
        jobs=filter_jobs(jobs, search, category),
        error=error,
        search=search,
        category=category,
        categories=JOB_CATEGORIES,
        errors=errors or {},
        form=form or {},
    ), status


@app.route('/jobs', methods=['GET'])
@login_required
def jobs():
    return _render_jobs()


@app.route('/jobs', methods=['POST'])
@role_required(UserRole.CLIENT)
def post_job():
    try:
        draft = parse_job_form(request.form)
        JobService(backend=_backend()).post_job(session['user_id'], draft)
    except ValidationError as e:
        return _render_jobs(errors=e.errors, form=request.form, status=400)
    except JobServiceError as e:
        flash(str(e), 'error')
        return _render_jobs(form=request.form, status=502)
    flash('Job posted successfully!', 'success')
    return redirect(url_for('jobs'))


def _render_job(job_id, errors=None, form=None, status=200):
    try:
        job = JobService(backend=_backend()).get_job(job_id)
    except JobServiceError as e:
        flash(str(e), 'error')
        return redirect(url_for('jobs'))
    if job is None:
        abort(404)
    return render_template('job_detail.html', job=job, errors=errors or {}, form=form or {}), status


@app.route('/jobs/<job_id>')
@login_required
def job_detail(job_id):
    return _render_job(job_id)


@app.route('/jobs/<job_id>/proposals', methods=['POST'])
@role_required(UserRole.FREELANCER)
def submit_proposal(job_id):
    try:
        draft = parse_proposal_form(request.form)
        JobService(backend=_backend()).submit_proposal(job_id, session['user_id'], draft)
    except ValidationError as e:
        return _render_job(job_id, errors=e.errors, form=request.form, status=400)
    except JobServiceError as e:
        flash(str(e), 'error')
        return _render_job(job_id, form=request.form, status=409)
    flash('Proposal submitted successfully!', 'success')
    return redirect(url_for('jobs'))


@app.route('/proposals')
@role_required(UserRole.FREELANCER)
def my_proposals():
    try:
        proposals = JobService(backend=_backend()).list_proposals_for_freelancer(session['user_id'])
    except JobServiceError as e:
        flash(str(e), 'error')
        proposals = []
    return render_template('proposals.html', proposals=proposals)


@app.route('/my-jobs')
@role_required(UserRole.CLIENT)
def my_jobs():
    backend = _backend()
    service = JobService(backend=backend)
    try:
        own_jobs = service.list_jobs_for_client(session['user_id'])
        proposals = service.list_proposals_for_jobs([job.id for job in own_jobs])
        freelancers = ProfileService(backend=backend).get_profiles(
            [p.freelancer_id for p in proposals], columns='id, full_name'
        )
    except (JobServiceError, ProfileServiceError) as e:
        flash(str(e), 'error')
        own_jobs, proposals, freelancers = [], [], {}
    by_job = {}
    for proposal in proposals:
        by_job.setdefault(proposal.job_id, []).append(proposal)
    return render_template('my_jobs.html', jobs=own_jobs, proposals=by_job, freelancers=freelancers)


@app.route('/proposals/<proposal_id>/<decision>', methods=['POST'])
@role_required(UserRole.CLIENT)
def decide_proposal(proposal_id, decision):
    if decision not in ('accept', 'reject'):
        abort(404)
    try:
        JobService(backend=_backend()).decide_proposal(
            session['user_id'], proposal_id, accept=decision == 'accept'
        )
        flash(f"Proposal {decision}ed.", 'success')
    except JobServiceError as e:
        flash(str(e), 'error')
    return redirect(url_for('my_jobs'))


# ---------------------------------------------------------------------------
# Campaigns and contributions
# ---------------------------------------------------------------------------

def _render_campaigns(errors=None, form=None, status=200):
    search = request.args.get('q', '')
    try:
        campaigns = CampaignService(backend=_backend()).list_active_campaigns()
        error = None
    except CampaignServiceError as e:
        campaigns, error = [], str(e)
    return render_template(
        'campaigns.html',
        campaigns=filter_campaigns(campaigns, search),
        error=error,
        search=search,
        categories=CAMPAIGN_CATEGORIES,
        errors=errors or {},
        form=form or {},
    ), status


@app.route('/campaigns', methods=['GET'])
@login_required
def campaigns():
    return _render_campaigns()


@app.route('/campaigns', methods=['POST'])
@role_required(UserRole.PROJECT_OWNER)
def create_campaign():
    try:
        draft = parse_campaign_form(request.form)
        CampaignService(backend=_backend()).create_campaign(session['user_id'], draft)
    except ValidationError as e:
        return _render_campaigns(errors=e.errors, form=request.form, status=400)
    except CampaignServiceError as e:
        flash(str(e), 'error')
        return _render_campaigns(form=request.form, status=502)
    flash('Campaign created successfully!', 'success')
    return redirect(url_for('campaigns'))


def _render_campaign(campaign_id, errors=None, form=None, status=200):
    service = CampaignService(backend=_backend())
    try:
        campaign = service.get_campaign(campaign_id)
        tiers = service.list_reward_tiers(campaign_id) if campaign else []
    except CampaignServiceError as e:
        flash(str(e), 'error')
        return redirect(url_for('campaigns'))
    if campaign is None:
        abort(404)
    return render_template(
        'campaign_detail.html', campaign=campaign, tiers=tiers, errors=errors or {}, form=form or {}
    ), status


@app.route('/campaigns/<campaign_id>')
@login_required
def campaign_detail(campaign_id):
    return _render_campaign(campaign_id)


@app.route('/campaigns/<campaign_id>/back', methods=['POST'])
@role_required(UserRole.BACKER)
def back_campaign(campaign_id):
    try:
        draft = parse_backing_form(request.form)
        CampaignService(backend=_backend()).back_campaign(
            campaign_id, session['user_id'], draft.amount, draft.reward_tier_id
        )
    except ValidationError as e:
        return _render_campaign(campaign_id, errors=e.errors, form=request.form, status=400)
    except CampaignServiceError as e:
        flash(str(e), 'error')
        return _render_campaign(campaign_id, form=request.form, status=409)
    flash(f"Thank you for backing this project with {format_amount(draft.amount)}!", 'success')
    return redirect(url_for('campaigns'))


@app.route('/my-campaigns')
@role_required(UserRole.PROJECT_OWNER)
def my_campaigns():
    try:
        own = CampaignService(backend=_backend()).list_campaigns_for_creator(session['user_id'])
    except CampaignServiceError as e:
        flash(str(e), 'error')
        own = []
    return render_template('my_campaigns.html', campaigns=own)


@app.route('/my-contributions')
@role_required(UserRole.BACKER)
def my_contributions():
    try:
        contributions = CampaignService(backend=_backend()).list_contributions_for_backer(session['user_id'])
    except CampaignServiceError as e:
        flash(str(e), 'error')
        contributions = []
    return render_template('my_contributions.html', contributions=contributions)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@app.route('/messages')
@login_required
def messages():
    try:
        contacts = MessageService(backend=_backend()).list_contacts(session['user_id'])
    except MessageServiceError as e:
        flash(str(e), 'error')
        contacts = []
    return render_template('messages.html', contacts=contacts)


@app.route('/messages/<contact_id>', methods=['GET', 'POST'])
@login_required
def conversation(contact_id):
    service = MessageService(backend=_backend())
    user_id = session['user_id']

    if request.method == 'POST':
        try:
            service.send_message(user_id, contact_id, request.form.get('content', ''))
        except MessageServiceError as e:
            flash(str(e), 'error')
        return redirect(url_for('conversation', contact_id=contact_id))

    try:
        contact = service.get_contact(contact_id)
        if contact is None:
            abort(404)
        thread = service.get_conversation(user_id, contact_id)
    except MessageServiceError as e:
        flash(str(e), 'error')
        return redirect(url_for('messages'))
    service.mark_as_read(user_id, contact_id)
    return render_template('chat.html', contact=contact, thread=thread, user_id=user_id)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

@app.route('/profile', methods=['GET', 'POST'])
@login_required
def profile():
    if request.method == 'GET':
        return render_template('profile.html', errors={}, form={}, role_options=ROLE_OPTIONS)

    try:
        update = parse_profile_form(request.form)
        g.profile = ProfileService(backend=_backend()).update_profile(
            session['user_id'], update, email=session.get('email', '')
        )
    except ValidationError as e:
        return render_template('profile.html', errors=e.errors, form=request.form, role_options=ROLE_OPTIONS), 400
    except ProfileServiceError:
        flash('Failed to update profile. Please try again.', 'error')
        return render_template('profile.html', errors={}, form=request.form, role_options=ROLE_OPTIONS), 502
    flash('Your profile has been successfully updated.', 'success')
    return redirect(url_for('profile'))


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------

@app.route('/api/jobs')
@login_required
def api_jobs():
    """Open jobs filtered by ?q= and ?category=."""
    try:
        found = JobService(backend=_backend()).list_open_jobs()
    except JobServiceError as e:
        return jsonify({'error': str(e)}), 502
    found = filter_jobs(found, request.args.get('q', ''), request.args.get('category', ALL_CATEGORIES))
    return jsonify({'success': True, 'jobs': [job.to_dict() for job in found]})


@app.route('/api/campaigns')
@login_required
def api_campaigns():
    """Active campaigns filtered by ?q=, with progress."""
    try:
        found = CampaignService(backend=_backend()).list_active_campaigns()
    except CampaignServiceError as e:
        return jsonify({'error': str(e)}), 502
    items = []
    for campaign in filter_campaigns(found, request.args.get('q', '')):
        data = campaign.to_dict()
        data['progress'] = calculate_progress(campaign.current_amount, campaign.goal_amount)
        data['time_left'] = time_left(campaign.deadline)
        items.append(data)
    return jsonify({'success': True, 'campaigns': items})


@app.route('/api/contacts')
@login_required
def api_contacts():
    try:
        contacts = MessageService(backend=_backend()).list_contacts(session['user_id'])
    except MessageServiceError as e:
        return jsonify({'error': str(e)}), 502
    return jsonify({'success': True, 'contacts': [c.to_dict() for c in contacts]})


@app.route('/api/messages/<contact_id>', methods=['GET', 'POST'])
@login_required
def api_messages(contact_id):
    service = MessageService(backend=_backend())
    user_id = session['user_id']

    if request.method == 'POST':
        data = request.get_json(silent=True) or {}
        try:
            message = service.send_message(user_id, contact_id, data.get('content', ''))
        except MessageServiceError as e:
            return jsonify({'error': str(e)}), 400
        return jsonify({'success': True, 'message': message.to_dict()}), 201

    try:
        thread = service.get_conversation(user_id, contact_id)
    except MessageServiceError as e:
        return jsonify({'error': str(e)}), 502
    service.mark_as_read(user_id, contact_id)
    return jsonify({'success': True, 'messages': [m.to_dict() for m in thread]})


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


if __name__ == '__main__':
    configure_logging()
    if not SUPABASE_URL:
        logger.warning("SUPABASE_URL is not set; backend calls will fail")

    port = int(os.environ.get('PORT', 5000))
    app.run(debug=False, host='0.0.0.0', port=port)
