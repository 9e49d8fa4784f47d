# Overview: Flask CLI command groups for bootstrap, inspection, and transfer decisions.

# backend/interbranch/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo data: main + two sub branches, users per role, one product.
#
# Branches and users:
# - python -m flask branches list
# - python -m flask branches create --name "Sub Branch 3" --type sub --code SB3
# - python -m flask users list
# - python -m flask users create --name "Ana" --email ana@example.com
# - python -m flask users assign --user-id 3 --branch-id 2 --role manager [--main-admin]
#
# Products and stock:
# - python -m flask products create --sku SKU-1 --name "Widget"
# - python -m flask inventory set --product-id 1 --branch-id 1 --quantity 100 [--min-stock 5]
# - python -m flask inventory show --product-id 1
#
# Transfers:
# - python -m flask transfers list [--status pending]
# - python -m flask transfers decide --id 4 --user-id 2 --action approve [--notes "ok"]

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from .extensions import db
from .errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .models import Branch, InventoryRecord, Product, TransferRequest, User, UserBranchAssignment
from .models.branches import BRANCH_TYPES, BRANCH_TYPE_MAIN, BRANCH_TYPE_SUB, ROLES
from .models.transfers import TRANSFER_STATUSES
from .services import transfer_service
from .services.stock_ledger_service import set_stock_level


WORKFLOW_ERRORS = (ValidationError, NotFoundError, AuthorizationError, ConflictError)


# =============================================================================
# SYSTEM COMMANDS
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


DEMO_BRANCHES = [
    ("Main Branch", "MAIN", BRANCH_TYPE_MAIN),
    ("Sub Branch 1", "SB1", BRANCH_TYPE_SUB),
    ("Sub Branch 2", "SB2", BRANCH_TYPE_SUB),
]

# (name, email, branch code, role, is_main_admin)
DEMO_USERS = [
    ("Main Admin", "admin@main.local", "MAIN", "admin", True),
    ("Main Manager", "manager@main.local", "MAIN", "manager", False),
    ("Sub1 Admin", "admin@sb1.local", "SB1", "admin", False),
    ("Sub1 Staff", "staff@sb1.local", "SB1", "staff", False),
    ("Sub2 Manager", "manager@sb2.local", "SB2", "manager", False),
    ("Sub2 Cashier", "cashier@sb2.local", "SB2", "cashier", False),
]


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create demo branches, users, and stock (safe to run repeatedly)."""
    db.create_all()

    branches = {}
    for name, code, branch_type in DEMO_BRANCHES:
        branch = db.session.query(Branch).filter_by(name=name).first()
        if not branch:
            branch = Branch(name=name, code=code, type=branch_type)
            db.session.add(branch)
            db.session.flush()
            click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id}, Type: {branch.type})")
        else:
            click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")
        branches[code] = branch

    for name, email, branch_code, role, main_admin in DEMO_USERS:
        user = db.session.query(User).filter_by(email=email).first()
        if user:
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        user = User(name=name, email=email)
        db.session.add(user)
        db.session.flush()
        db.session.add(UserBranchAssignment(
            user_id=user.id,
            branch_id=branches[branch_code].id,
            role=role,
            is_main_admin=main_admin,
        ))
        click.echo(f"PASS Created user: {name} ({email}) as {role} at {branch_code} (ID: {user.id})")

    product = db.session.query(Product).filter_by(sku="DEMO-001").first()
    if not product:
        product = Product(sku="DEMO-001", name="Demo Widget")
        db.session.add(product)
        db.session.flush()
        set_stock_level(product.id, branches["MAIN"].id, 100)
        click.echo(f"PASS Created product: {product.name} (ID: {product.id}) with 100 units at Main Branch")

    db.session.commit()
    click.echo("DONE Demo data ready.")


# =============================================================================
# BRANCH COMMANDS
# =============================================================================

@click.group('branches')
def branches_group():
    """Branch inspection and bootstrap commands."""


@branches_group.command('list')
@with_appcontext
def list_branches():
    """List all branches."""
    branches = db.session.query(Branch).order_by(Branch.id.asc()).all()

    if not branches:
        click.echo("No branches found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<10} {'Type':<6} {'Users'}")
    click.echo("="*70)

    for branch in branches:
        user_count = db.session.query(UserBranchAssignment).filter_by(branch_id=branch.id, is_active=True).count()
        click.echo(f"{branch.id:<5} {branch.name:<30} {branch.code or '-':<10} {branch.type:<6} {user_count}")

    click.echo("="*70 + "\n")


@branches_group.command('create')
@click.option('--name', required=True, help='Branch name (unique)')
@click.option('--type', 'branch_type', type=click.Choice(BRANCH_TYPES), default=BRANCH_TYPE_SUB, help='Branch type')
@click.option('--code', help='Short branch code')
@click.option('--address', help='Street address')
@with_appcontext
def create_branch_cli(name, branch_type, code, address):
    """Create a new branch."""
    if db.session.query(Branch).filter_by(name=name).first():
        click.echo(f"FAIL Branch '{name}' already exists")
        return

    if branch_type == BRANCH_TYPE_MAIN and db.session.query(Branch).filter_by(type=BRANCH_TYPE_MAIN).first():
        click.echo("WARN  A main branch already exists; notifications use the lowest-id main branch")

    branch = Branch(name=name, type=branch_type, code=code, address=address)
    db.session.add(branch)
    db.session.commit()

    click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id}, Type: {branch.type})")


# =============================================================================
# USER COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their branch assignments."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<30} {'Active':<8} {'Assignments'}")
    click.echo("="*100)

    for user in users:
        assignments = []
        for a in user.branch_assignments:
            label = f"{a.branch.name}:{a.role}"
            if a.is_main_admin:
                label += " (main admin)"
            if not a.is_active:
                label += " (inactive)"
            assignments.append(label)

        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<20} {user.email:<30} {active_str:<8} {', '.join(assignments) or 'none'}")

    click.echo("="*100 + "\n")


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address (unique)')
@with_appcontext
def create_user_cli(name, email):
    """Create a user directory entry."""
    if db.session.query(User).filter_by(email=email).first():
        click.echo(f"FAIL User with email '{email}' already exists")
        return

    user = User(name=name, email=email)
    db.session.add(user)
    db.session.commit()

    click.echo(f"PASS Created user: {user.name} ({user.email}) (ID: {user.id})")


@users_group.command('assign')
@click.option('--user-id', type=int, required=True, help='User ID')
@click.option('--branch-id', type=int, required=True, help='Branch ID')
@click.option('--role', type=click.Choice(ROLES), required=True, help='Role at the branch')
@click.option('--main-admin', is_flag=True, help='Grant main admin (all branches)')
@with_appcontext
def assign_user_cli(user_id, branch_id, role, main_admin):
    """Assign a user to a branch, or update the existing assignment."""
    user = db.session.get(User, user_id)
    if not user:
        click.echo(f"FAIL User ID {user_id} not found")
        return

    branch = db.session.get(Branch, branch_id)
    if not branch:
        click.echo(f"FAIL Branch ID {branch_id} not found")
        return

    assignment = db.session.query(UserBranchAssignment).filter_by(user_id=user_id, branch_id=branch_id).first()
    if assignment:
        assignment.role = role
        assignment.is_main_admin = main_admin
        assignment.is_active = True
        verb = "Updated"
    else:
        assignment = UserBranchAssignment(
            user_id=user_id, branch_id=branch_id, role=role, is_main_admin=main_admin,
        )
        db.session.add(assignment)
        verb = "Assigned"

    db.session.commit()
    suffix = " (main admin)" if main_admin else ""
    click.echo(f"PASS {verb} {user.name} as {role} at {branch.name}{suffix}")


# =============================================================================
# PRODUCT AND INVENTORY COMMANDS
# =============================================================================

@click.group('products')
def products_group():
    """Product bootstrap commands."""


@products_group.command('create')
@click.option('--sku', required=True, help='SKU (unique)')
@click.option('--name', required=True, help='Product name')
@with_appcontext
def create_product_cli(sku, name):
    """Create a product."""
    product = Product(sku=sku, name=name)
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        click.echo(f"FAIL Product with SKU '{sku}' already exists")
        return

    click.echo(f"PASS Created product: {product.name} (ID: {product.id}, SKU: {product.sku})")


@click.group('inventory')
def inventory_group():
    """Stock level inspection and counts."""


@inventory_group.command('set')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--branch-id', type=int, required=True, help='Branch ID')
@click.option('--quantity', type=int, required=True, help='Absolute quantity on hand')
@click.option('--min-stock', type=int, help='Low-stock threshold')
@with_appcontext
def set_inventory_cli(product_id, branch_id, quantity, min_stock):
    """Set the counted quantity for a product at a branch."""
    if not db.session.get(Product, product_id):
        click.echo(f"FAIL Product ID {product_id} not found")
        return
    if not db.session.get(Branch, branch_id):
        click.echo(f"FAIL Branch ID {branch_id} not found")
        return

    try:
        record = set_stock_level(product_id, branch_id, quantity, min_stock=min_stock)
        db.session.commit()
    except ValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Product {product_id} at branch {branch_id}: {record.quantity} on hand (min {record.min_stock})")


@inventory_group.command('show')
@click.option('--product-id', type=int, required=True, help='Product ID')
@with_appcontext
def show_inventory_cli(product_id):
    """Show stock of a product across branches."""
    product = db.session.get(Product, product_id)
    if not product:
        click.echo(f"FAIL Product ID {product_id} not found")
        return

    records = (
        db.session.query(InventoryRecord)
        .filter_by(product_id=product_id)
        .order_by(InventoryRecord.branch_id.asc())
        .all()
    )

    click.echo(f"\n{product.name} ({product.sku})")
    click.echo("="*60)
    click.echo(f"{'Branch':<30} {'Quantity':<10} {'Min':<6} {'Low'}")
    click.echo("="*60)
    for record in records:
        low = "YES" if record.quantity <= record.min_stock else ""
        click.echo(f"{record.branch.name:<30} {record.quantity:<10} {record.min_stock:<6} {low}")
    click.echo("="*60)
    click.echo(f"Total: {sum(r.quantity for r in records)}\n")


# =============================================================================
# TRANSFER COMMANDS
# =============================================================================

@click.group('transfers')
def transfers_group():
    """Transfer request inspection and decisions."""


@transfers_group.command('list')
@click.option('--status', type=click.Choice(TRANSFER_STATUSES), help='Filter by status')
@click.option('--limit', type=int, default=50, help='Max rows')
@with_appcontext
def list_transfers_cli(status, limit):
    """List transfer requests, newest first."""
    query = db.session.query(TransferRequest)
    if status:
        query = query.filter_by(status=status)

    transfers = query.order_by(TransferRequest.created_at.desc(), TransferRequest.id.desc()).limit(limit).all()

    if not transfers:
        click.echo("No transfer requests found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Product':<20} {'From':<18} {'To':<18} {'Qty':<6} {'Status':<9} {'Rev'}")
    click.echo("="*90)

    for t in transfers:
        click.echo(
            f"{t.id:<5} {t.product.name[:20]:<20} {t.source_branch.name[:18]:<18} "
            f"{t.target_branch.name[:18]:<18} {t.quantity:<6} {t.status:<9} {t.revision}"
        )

    click.echo("="*90 + "\n")


@transfers_group.command('decide')
@click.option('--id', 'request_id', type=int, required=True, help='Transfer request ID')
@click.option('--user-id', type=int, required=True, help='Deciding user ID')
@click.option('--action', type=click.Choice(transfer_service.TRANSFER_ACTIONS), required=True)
@click.option('--notes', help='Optional notes')
@with_appcontext
def decide_transfer_cli(request_id, user_id, action, notes):
    """Approve, reject, or resend a transfer request as a user."""
    try:
        transfer = transfer_service.decide_transfer(user_id, request_id, action, notes=notes)
    except WORKFLOW_ERRORS as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Transfer request {transfer.id} is now {transfer.status} (revision {transfer.revision})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(transfers_group)
