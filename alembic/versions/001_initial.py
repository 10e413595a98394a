"""Initial migration

Revision ID: 001_initial
Revises: 
Create Date: 2025-01-15 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None

CATEGORIES = "'headphones', 'earbuds', 'neckbands', 'wired_earphones', 'robot_vacuums'"
STATUSES = "'in_stock', 'out_of_stock', 'archived'"

# table name -> (constraint prefix, retailer-specific columns)
PRODUCT_TABLES = {
    'amazon_products': ('amazon', [
        ('asin', sa.Text()),
        ('features', postgresql.JSONB()),
        ('reviews', postgresql.JSONB()),
    ]),
    'flipkart_products': ('flipkart', [
        ('product_id', sa.Text()),
        ('key_specs', postgresql.JSONB()),
        ('reviews', postgresql.JSONB()),
    ]),
    'samsung_products': ('samsung', [
        ('product_id', sa.Text()),
        ('features', postgresql.JSONB()),
    ]),
    'sony_products': ('sony', [
        ('product_id', sa.Text()),
        ('features', postgresql.JSONB()),
    ]),
}


def _create_product_table(table_name: str, prefix: str, extra_columns) -> None:
    op.create_table(
        table_name,
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_name', sa.Text(), nullable=False),
        sa.Column('brand', sa.Text(), nullable=True),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('price_inr', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('rating', sa.Numeric(precision=2, scale=1), nullable=True),
        sa.Column('reviews_count', sa.Integer(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('specifications', postgresql.JSONB(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('product_url', sa.Text(), nullable=True),
        sa.Column('affiliate_url', sa.Text(), nullable=True),
        sa.Column('availability_status', sa.Text(), nullable=False, server_default='in_stock'),
        sa.Column('recommendations', postgresql.JSONB(), nullable=True),
        sa.Column('price_comparisons', postgresql.JSONB(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('last_updated', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        *[sa.Column(name, type_, nullable=True) for name, type_ in extra_columns],
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_name', name=f'uq_{prefix}_product_name'),
        sa.CheckConstraint(f'category IN ({CATEGORIES})', name=f'ck_{prefix}_category'),
        sa.CheckConstraint(f'availability_status IN ({STATUSES})', name=f'ck_{prefix}_availability'),
        sa.CheckConstraint('price_inr >= 0', name=f'ck_{prefix}_price'),
        sa.CheckConstraint('rating >= 0.0 AND rating <= 5.0', name=f'ck_{prefix}_rating'),
        sa.CheckConstraint('reviews_count >= 0', name=f'ck_{prefix}_reviews_count'),
    )
    for column in ('product_name', 'category', 'price_inr', 'rating', 'availability_status'):
        op.create_index(f'ix_{table_name}_{column}', table_name, [column])


def upgrade() -> None:
    for table_name, (prefix, extra_columns) in PRODUCT_TABLES.items():
        _create_product_table(table_name, prefix, extra_columns)

    # Search history table
    op.create_table(
        'search_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('search_query', sa.Text(), nullable=False),
        sa.Column('search_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('last_searched_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('search_query', name='uq_search_history_query'),
    )
    op.create_index('ix_search_history_last_searched_at', 'search_history', ['last_searched_at'])
    op.create_index('ix_search_history_search_count', 'search_history', ['search_count'])


def downgrade() -> None:
    op.drop_index('ix_search_history_search_count', table_name='search_history')
    op.drop_index('ix_search_history_last_searched_at', table_name='search_history')
    op.drop_table('search_history')

    for table_name in reversed(list(PRODUCT_TABLES)):
        for column in ('product_name', 'category', 'price_inr', 'rating', 'availability_status'):
            op.drop_index(f'ix_{table_name}_{column}', table_name=table_name)
        op.drop_table(table_name)
