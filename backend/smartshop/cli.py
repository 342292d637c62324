# Overview: Flask CLI command groups for bootstrap, inspection, and demo data.

# backend/smartshop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that don't exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent: demo user, shop, products, customers and a few sales.
#
# User inspection/bootstrap:
# - python -m flask users list
# - python -m flask users create --username owner --email owner@shop.local --password "Password123!"
# - python -m flask users deactivate owner
#
# Shop inspection:
# - python -m flask shops list

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, Product, Sale, User
from .services import sales_service
from .services.auth_service import create_user, PasswordValidationError, UserExistsError
from .services.shop_service import create_shop, get_shop_for_user, list_shops
from .services.session_service import revoke_all_user_sessions

DEMO_USERNAME = "demo"
DEMO_EMAIL = "demo@smartshop.local"
DEMO_PASSWORD = "Password123!"

DEMO_PRODUCTS = [
    # name, code, category, unit, cost, price, stock, minimum
    ("Urea fertilizer 50kg", "FER-UREA", "Fertilizer", "bag", 65000, 80000, 3, 10),
    ("Compound fertilizer 15-15-15", "FER-151515", "Fertilizer", "bag", 48000, 60000, 8, 10),
    ("Jasmine rice seed 25kg", "SEED-RICE", "Seeds", "bag", 30000, 38000, 25, 5),
    ("Pest control spray 1L", "CHEM-PEST", "Chemicals", "bottle", 80000, 105000, 12, 4),
]

DEMO_CUSTOMERS = [
    # name, phone, debt limit
    ("Somchai Farmer", "0812345678", None),
    ("Somying Grower", "0823456789", 500000),
    ("Somsak Planter", "0834567890", 300000),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that don't exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate every table. Sales, debts and closes are lost."""
    if not yes:
        click.confirm("WARN Every shop, sale and debt record will be deleted. Continue?", abort=True)

    db.drop_all()
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create a demo user with a stocked shop (skips what already exists)."""
    user = db.session.query(User).filter_by(username=DEMO_USERNAME).first()
    if user is None:
        user = create_user(DEMO_USERNAME, DEMO_EMAIL, DEMO_PASSWORD, name="Demo Owner")
        click.echo(f"PASS Created user: {user.username} ({user.email})")
    else:
        click.echo(f"WARN  User '{DEMO_USERNAME}' already exists, reusing it")

    shop = get_shop_for_user(user.id)
    if shop is None:
        shop = create_shop(user_id=user.id, patch={
            "name": "Demo Farm Supply",
            "phone": "044000000",
            "province": "Chaiyaphum",
            "district": "Mueang Chaiyaphum",
            "receipt_footer": "Thank you for your purchase",
            "timezone": "Asia/Bangkok",
        })
        click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id})")

    if db.session.query(Product).filter_by(shop_id=shop.id).count() == 0:
        for name, code, category, unit, cost, price, stock, minimum in DEMO_PRODUCTS:
            db.session.add(Product(
                shop_id=shop.id, name=name, code=code, category=category, unit=unit,
                cost_price_cents=cost, selling_price_cents=price,
                current_stock=stock, minimum_stock=minimum,
            ))
        for name, phone, limit in DEMO_CUSTOMERS:
            db.session.add(Customer(shop_id=shop.id, name=name, phone=phone, debt_limit_cents=limit))
        db.session.commit()
        click.echo(f"PASS Created {len(DEMO_PRODUCTS)} products and {len(DEMO_CUSTOMERS)} customers")

    if db.session.query(Sale).filter_by(shop_id=shop.id).count() == 0:
        products = db.session.query(Product).filter_by(shop_id=shop.id).order_by(Product.id).all()
        customers = db.session.query(Customer).filter_by(shop_id=shop.id).order_by(Customer.id).all()
        demo_sales = [
            {"payment_method": "cash", "customer_id": customers[0].id,
             "items": [{"product_id": products[0].id, "quantity": 5},
                       {"product_id": products[1].id, "quantity": 3}]},
            {"payment_method": "credit", "customer_id": customers[1].id, "paid_amount_cents": 0,
             "items": [{"product_id": products[2].id, "quantity": 10}]},
            {"payment_method": "transfer",
             "items": [{"product_id": products[3].id, "quantity": 2}]},
        ]
        for index, payload in enumerate(demo_sales):
            payload["idempotency_key"] = f"demo-seed-{index}"
            sales_service.create_sale(shop=shop, payload=payload, user_id=user.id)
        click.echo(f"PASS Recorded {len(demo_sales)} demo sales")

    click.echo("\nDemo credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   {DEMO_USERNAME} -> {DEMO_EMAIL} / {DEMO_PASSWORD}")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Shop'}")
    click.echo("="*80)
    for user in users:
        shop = get_shop_for_user(user.id)
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {shop.name if shop else '-'}")
    click.echo("="*80 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--name', default=None, help='Display name')
@with_appcontext
def create_user_cli(username, email, password, name):
    """
    Create a new user.

    Password must be 8+ chars with uppercase, lowercase, digit and special char.
    """
    try:
        user = create_user(username, email, password, name=name)
    except (PasswordValidationError, UserExistsError, ValueError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.username} ({user.email}) ID: {user.id}")


@users_group.command('deactivate')
@click.argument('username')
@with_appcontext
def deactivate_user_cli(username):
    """Disable a login and close all of its sessions."""
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        raise click.ClickException(f"User {username} not found")
    user.is_active = False
    db.session.commit()
    closed = revoke_all_user_sessions(user.id, reason="User account deactivated")
    click.echo(f"PASS Deactivated {user.username}, closed {closed} session(s)")


@click.group('shops')
def shops_group():
    """Shop inspection commands."""


@shops_group.command('list')
@with_appcontext
def list_shops_cli():
    """List all shops with their owners."""
    shops = list_shops()
    if not shops:
        click.echo("No shops found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Owner':<20} {'Timezone':<20}")
    click.echo("="*80)
    for shop in shops:
        owner = db.session.get(User, shop.user_id)
        click.echo(f"{shop.id:<5} {shop.name:<30} {owner.username if owner else '-':<20} {shop.timezone or 'default':<20}")
    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(shops_group)
