"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 08:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create projects table
    op.create_table('projects',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('budget', sa.Numeric(14, 2), nullable=False),
        sa.Column('overdraft_limit', sa.Numeric(14, 2), nullable=False),
        sa.Column('currency_code', sa.String(length=3), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('cutoff_time', sa.Time(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('address_name', sa.String(length=128), nullable=True),
        sa.Column('address_full_address', sa.Text(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_projects_company_id', 'projects', ['company_id'])
    op.create_index('ix_projects_company_status', 'projects', ['company_id', 'status'])

    # Create employees table
    op.create_table('employees',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('full_name', sa.String(length=256), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('service_type', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('working_days', sa.JSON(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_employees_company_id', 'employees', ['company_id'])
    op.create_index('ix_employees_project_id', 'employees', ['project_id'])

    # Create employee_budgets table
    op.create_table('employee_budgets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('total_budget', sa.Numeric(14, 2), nullable=False),
        sa.Column('daily_limit', sa.Numeric(14, 2), nullable=False),
        sa.Column('period', sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_id')
    )

    # Create orders table
    op.create_table('orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('employee_id', sa.Integer(), nullable=True),
        sa.Column('guest_name', sa.String(length=256), nullable=True),
        sa.Column('combo_type', sa.String(length=32), nullable=False),
        sa.Column('price', sa.Numeric(14, 2), nullable=False),
        sa.Column('currency_code', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('order_date', sa.DateTime(), nullable=False),
        sa.Column('is_guest_order', sa.Boolean(), nullable=False),
        sa.Column('frozen_at', sa.DateTime(), nullable=True),
        sa.Column('frozen_reason', sa.Text(), nullable=True),
        sa.Column('replacement_order_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id')
    )

    # Create indexes for orders
    op.create_index('ix_orders_company_id', 'orders', ['company_id'])
    op.create_index('ix_orders_project_id', 'orders', ['project_id'])
    op.create_index('ix_orders_employee_id', 'orders', ['employee_id'])
    op.create_index('ix_orders_project_status_date', 'orders', ['project_id', 'status', 'order_date'])
    op.create_index('ix_orders_employee_date', 'orders', ['employee_id', 'order_date'])

    # Create lunch_subscriptions table
    op.create_table('lunch_subscriptions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('combo_type', sa.String(length=32), nullable=False),
        sa.Column('schedule_type', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_lunch_subscriptions_employee_id', 'lunch_subscriptions', ['employee_id'])
    op.create_index('ix_lunch_subscriptions_company_id', 'lunch_subscriptions', ['company_id'])
    op.create_index('ix_lunch_subscriptions_project_id', 'lunch_subscriptions', ['project_id'])

    # Create company_subscriptions table
    op.create_table('company_subscriptions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('total_days', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_company_subscriptions_project_id', 'company_subscriptions', ['project_id'])
    op.create_index('ix_company_subscriptions_status_end', 'company_subscriptions', ['status', 'end_date'])

    # Create employee_meal_assignments table
    op.create_table('employee_meal_assignments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('subscription_id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('assignment_date', sa.Date(), nullable=False),
        sa.Column('combo_type', sa.String(length=32), nullable=False),
        sa.Column('price', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['subscription_id'], ['company_subscriptions.id']),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('subscription_id', 'employee_id', 'assignment_date', name='uq_assignment_day')
    )
    op.create_index('ix_employee_meal_assignments_subscription_id', 'employee_meal_assignments', ['subscription_id'])
    op.create_index('ix_employee_meal_assignments_employee_id', 'employee_meal_assignments', ['employee_id'])

    # Create company_transactions table
    op.create_table('company_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('balance_after', sa.Numeric(14, 2), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_company_transactions_company_id', 'company_transactions', ['company_id'])
    op.create_index('ix_company_transactions_project_id', 'company_transactions', ['project_id'])
    op.create_index('ix_company_transactions_order_id', 'company_transactions', ['order_id'])
    op.create_index('ix_company_transactions_project_created', 'company_transactions', ['project_id', 'created_at'])

    # Create compensation_transactions table
    op.create_table('compensation_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('transaction_date', sa.DateTime(), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('company_paid_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('restaurant_name', sa.String(length=256), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_compensation_transactions_project_id', 'compensation_transactions', ['project_id'])
    op.create_index('ix_compensation_transactions_employee_id', 'compensation_transactions', ['employee_id'])

    # Create audit_logs table
    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('compensation_transactions')
    op.drop_table('company_transactions')
    op.drop_table('employee_meal_assignments')
    op.drop_table('company_subscriptions')
    op.drop_table('lunch_subscriptions')
    op.drop_table('orders')
    op.drop_table('employee_budgets')
    op.drop_table('employees')
    op.drop_table('projects')
