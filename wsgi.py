import click, pytest, sys
from flask.cli import AppGroup

from SpendWise.main import create_app
from SpendWise.exceptions import SpendWiseError
from SpendWise.controllers import (
    create_admin,
    create_user,
    get_all_users,
    get_all_users_json,
    get_all_password_reset_requests,
    get_user,
    initialize,
    list_pending_password_resets,
    manual_password_reset
)

app = create_app()

@app.cli.command("init", help="Creates and initializes the database")
def init():
    initialize()
    print('database intialized')

# User Commands
user_cli = AppGroup('user', help='User object commands')

@user_cli.command("create", help="Creates a user")
@click.argument("username", default="rob")
@click.argument("email", default="rob@spendwise.local")
@click.argument("password", default="robpass")
def create_user_command(username, email, password):
    create_user(username, email, password)
    print(f'{username} created!')

@user_cli.command("create-admin", help="Creates an admin who can review password resets")
@click.argument("username")
@click.argument("email")
@click.argument("password")
@click.option("--role", default="support", show_default=True)
def create_admin_command(username, email, password, role):
    create_admin(username, email, password, role=role)
    print(f'admin {username} created!')

@user_cli.command("list", help="Lists users in the database")
@click.argument("format", default="string")
def list_user_command(format):
    if format == 'string':
        print(get_all_users())
    else:
        print(get_all_users_json())

app.cli.add_command(user_cli)

# Password reset commands
reset_cli = AppGroup('reset', help='Password reset request commands')

@reset_cli.command("list", help="Lists password reset requests")
@click.option("--all", "show_all", is_flag=True, help="Include processed requests")
def list_resets_command(show_all):
    if show_all:
        for status, requests in get_all_password_reset_requests().items():
            print(f"[{status}] {len(requests)}")
            for req in requests:
                print(f"  #{req['id']} {req['username']} <{req['email']}> {req['created_at']} via {req['submitted_via']}")
        return

    pending = list_pending_password_resets()
    if not pending:
        print('No pending password reset requests')
    for req in pending:
        print(f"#{req.id} {req.username} <{req.email}> {req.created_at:%Y-%m-%d %H:%M}")

@reset_cli.command("manual", help="Stages an approved password for a user")
@click.argument("admin_username")
@click.argument("username")
@click.password_option("--new-password", prompt="New password")
def manual_reset_command(admin_username, username, new_password):
    admin = get_user(admin_username)
    if admin is None:
        raise click.BadParameter(f"unknown admin '{admin_username}'", param_hint='ADMIN_USERNAME')
    try:
        reset_request = manual_password_reset(admin, new_password, username=username)
    except SpendWiseError as e:
        raise click.ClickException(e.message) from e
    print(f'request #{reset_request.id} approved for {reset_request.username}')

app.cli.add_command(reset_cli)

'''
Test Commands
'''

test_cli = AppGroup('test', help='Testing commands')

@test_cli.command('app', help='Run tests (all/unit/int)')
@click.argument('type', default='all')
def run_tests(type):
    if type == 'unit':
        sys.exit(pytest.main(['-k', 'UnitTests', 'SpendWise/tests']))
    elif type == 'int':
        sys.exit(pytest.main(['-k', 'IntegrationTests', 'SpendWise/tests']))
    else:
        sys.exit(pytest.main(['SpendWise/tests']))

app.cli.add_command(test_cli)
