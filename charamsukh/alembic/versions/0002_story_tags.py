"""story tags

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = '0002'
down_revision = '0001'
branch_labels = None
depends_on = None


def upgrade():
    story_tags = op.create_table('story_tags',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('story_id', sa.Integer, sa.ForeignKey('stories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tag', sa.String(50), nullable=False),
        sa.UniqueConstraint('story_id', 'tag', name='uix_story_tag')
    )
    op.create_index('ix_story_tags_story_id', 'story_tags', ['story_id'])
    op.create_index('ix_story_tags_tag', 'story_tags', ['tag'])

    # backfill from the tag lists already stored on stories
    stories = sa.table('stories', sa.column('id', sa.Integer), sa.column('tags', sa.JSON))
    rows = op.get_bind().execute(sa.select(stories.c.id, stories.c.tags)).all()
    values = [{'story_id': story_id, 'tag': tag} for story_id, tags in rows for tag in dict.fromkeys(tags or [])]
    if values:
        op.bulk_insert(story_tags, values)


def downgrade():
    op.drop_index('ix_story_tags_tag', table_name='story_tags')
    op.drop_index('ix_story_tags_story_id', table_name='story_tags')
    op.drop_table('story_tags')
