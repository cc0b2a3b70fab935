"""Initial schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261018_0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create players, listings and parse_cache tables."""
    op.create_table(
        'players',
        sa.Column('content_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('home_world', sa.String(), nullable=False),
        sa.Column('last_seen', sa.DateTime(), nullable=True),
        sa.Column('seen_count', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('content_id')
    )
    op.create_index('ix_players_last_seen', 'players', ['last_seen'])

    op.create_table(
        'listings',
        sa.Column('listing_id', sa.Integer(), nullable=False),
        sa.Column('duty_id', sa.Integer(), nullable=False),
        sa.Column('high_end', sa.Boolean(), nullable=False),
        sa.Column('private', sa.Boolean(), nullable=False),
        sa.Column('seconds_remaining', sa.Integer(), nullable=False),
        sa.Column('leader_content_id', sa.BigInteger(), nullable=False),
        sa.Column('member_content_ids', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('listing_id')
    )
    op.create_index('ix_listings_duty_id', 'listings', ['duty_id'])
    op.create_index('ix_listings_updated_at', 'listings', ['updated_at'])

    # Une ligne par (joueur, zone) ; pas de TTL, uniquement écrasée
    op.create_table(
        'parse_cache',
        sa.Column('content_id', sa.BigInteger(), nullable=False),
        sa.Column('zone_id', sa.Integer(), nullable=False),
        sa.Column('fetched_at', sa.DateTime(), nullable=False),
        sa.Column('encounters', sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint('content_id', 'zone_id')
    )
    op.create_index('ix_parse_cache_fetched_at', 'parse_cache', ['fetched_at'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index('ix_parse_cache_fetched_at', 'parse_cache')
    op.drop_table('parse_cache')
    op.drop_index('ix_listings_updated_at', 'listings')
    op.drop_index('ix_listings_duty_id', 'listings')
    op.drop_table('listings')
    op.drop_index('ix_players_last_seen', 'players')
    op.drop_table('players')
