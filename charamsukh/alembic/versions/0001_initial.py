"""initial

Revision ID: 0001
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('avatar', sa.String(255), nullable=False),
        sa.Column('bio', sa.String(500), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('preferences', sa.JSON(), nullable=False),
        sa.Column('stories_read', sa.Integer, nullable=False),
        sa.Column('hours_listened', sa.Float(), nullable=False),
        sa.Column('bookmarks_count', sa.Integer, nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('categories',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('icon', sa.String(50), nullable=False),
        sa.Column('color', sa.String(50), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())
    )
    op.create_index('ix_categories_name', 'categories', ['name'], unique=True)

    op.create_table('stories',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('author_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('cover_image', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('has_audio', sa.Boolean(), nullable=False),
        sa.Column('audio_url', sa.String(255), nullable=False),
        sa.Column('audio_status', sa.String(20), nullable=False),
        sa.Column('audio_duration', sa.Integer, nullable=False),
        sa.Column('audio_voice', sa.String(50), nullable=False),
        sa.Column('views', sa.Integer, nullable=False),
        sa.Column('reads', sa.Integer, nullable=False),
        sa.Column('likes_count', sa.Integer, nullable=False),
        sa.Column('comments_count', sa.Integer, nullable=False),
        sa.Column('bookmarks_count', sa.Integer, nullable=False),
        sa.Column('audio_plays', sa.Integer, nullable=False),
        sa.Column('read_time', sa.Integer, nullable=False),
        sa.Column('featured', sa.Boolean(), nullable=False),
        sa.Column('moderation_notes', sa.String(1000), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_modified', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())
    )
    op.create_index('ix_stories_id', 'stories', ['id'])
    op.create_index('ix_stories_author_id', 'stories', ['author_id'])
    op.create_index('ix_stories_created_at', 'stories', ['created_at'])
    op.create_index('ix_stories_category_status_published', 'stories', ['category', 'status', 'published_at'])
    op.create_index('ix_stories_author_status', 'stories', ['author_id', 'status'])

    op.create_table('story_likes',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('story_id', sa.Integer, sa.ForeignKey('stories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'story_id', name='uix_user_story_like')
    )
    op.create_index('ix_story_likes_user_id', 'story_likes', ['user_id'])
    op.create_index('ix_story_likes_story_id', 'story_likes', ['story_id'])

    op.create_table('story_comments',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('story_id', sa.Integer, sa.ForeignKey('stories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('comment', sa.String(1000), nullable=False),
        sa.Column('is_edited', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())
    )
    op.create_index('ix_story_comments_id', 'story_comments', ['id'])
    op.create_index('ix_story_comments_story_id', 'story_comments', ['story_id'])
    op.create_index('ix_story_comments_user_id', 'story_comments', ['user_id'])
    op.create_index('ix_story_comments_created_at', 'story_comments', ['created_at'])

    op.create_table('bookmarks',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('story_id', sa.Integer, sa.ForeignKey('stories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'story_id', name='uix_user_story_bookmark')
    )
    op.create_index('ix_bookmarks_user_id', 'bookmarks', ['user_id'])
    op.create_index('ix_bookmarks_story_id', 'bookmarks', ['story_id'])

    op.create_table('reading_history',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('story_id', sa.Integer, sa.ForeignKey('stories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('progress', sa.Integer, nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False),
        sa.Column('last_read', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('user_id', 'story_id', name='uix_user_story_history')
    )
    op.create_index('ix_reading_history_user_id', 'reading_history', ['user_id'])
    op.create_index('ix_reading_history_story_id', 'reading_history', ['story_id'])
    op.create_index('ix_reading_history_last_read', 'reading_history', ['last_read'])

    op.create_table('audio_jobs',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('story_id', sa.Integer, sa.ForeignKey('stories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('requested_by', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('voice', sa.String(50), nullable=False),
        sa.Column('attempts', sa.Integer, nullable=False),
        sa.Column('max_attempts', sa.Integer, nullable=False),
        sa.Column('error_message', sa.String(1000), nullable=True),
        sa.Column('audio_url', sa.String(255), nullable=True),
        sa.Column('duration', sa.Integer, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True)
    )
    op.create_index('ix_audio_jobs_story_id', 'audio_jobs', ['story_id'])
    op.create_index('ix_audio_jobs_status', 'audio_jobs', ['status'])


def downgrade():
    op.drop_table('audio_jobs')
    op.drop_table('reading_history')
    op.drop_table('bookmarks')
    op.drop_table('story_comments')
    op.drop_table('story_likes')
    op.drop_table('stories')
    op.drop_table('categories')
    op.drop_table('users')
