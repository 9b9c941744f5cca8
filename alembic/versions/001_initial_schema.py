"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _id_index(table: str) -> None:
    op.create_index(op.f(f'ix_{table}_id'), table, ['id'], unique=False)


def upgrade() -> None:
    # Users first, everything else references them
    op.create_table('users',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('email', sa.String(), nullable=False),
                    sa.Column('password_hash', sa.String(), nullable=False),
                    sa.Column('username', sa.String(length=20), nullable=False),
                    sa.Column('is_admin', sa.Boolean(), nullable=False,
                              server_default=sa.false()),
                    sa.Column('profile_pic', sa.String(), nullable=False, server_default=''),
                    sa.Column('bio', sa.String(length=160), nullable=False, server_default=''),
                    sa.Column('latitude', sa.Float(), nullable=False, server_default='0'),
                    sa.Column('longitude', sa.Float(), nullable=False, server_default='0'),
                    sa.Column('notifications_enabled', sa.Boolean(), nullable=False,
                              server_default=sa.true()),
                    sa.Column('notify_comments', sa.Boolean(), nullable=False,
                              server_default=sa.true()),
                    sa.Column('notify_likes', sa.Boolean(), nullable=False,
                              server_default=sa.true()),
                    sa.Column('notify_follows', sa.Boolean(), nullable=False,
                              server_default=sa.true()),
                    sa.Column('notify_recommendations', sa.Boolean(), nullable=False,
                              server_default=sa.true()),
                    sa.Column('profile_public', sa.Boolean(), nullable=False,
                              server_default=sa.true()),
                    sa.Column('share_location', sa.Boolean(), nullable=False,
                              server_default=sa.true()),
                    sa.Column('last_active', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.Column('updated_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('users')
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)

    op.create_table('user_interests',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('user_id', sa.Integer(), nullable=False),
                    sa.Column('name', sa.String(), nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id'),
                    sa.UniqueConstraint('user_id', 'name', name='uq_user_interest')
                    )
    _id_index('user_interests')
    op.create_index(op.f('ix_user_interests_user_id'), 'user_interests', ['user_id'])
    op.create_index(op.f('ix_user_interests_name'), 'user_interests', ['name'])

    op.create_table('follows',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('follower_id', sa.Integer(), nullable=False),
                    sa.Column('followee_id', sa.Integer(), nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['follower_id'], ['users.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['followee_id'], ['users.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id'),
                    sa.UniqueConstraint('follower_id', 'followee_id', name='uq_follow_pair')
                    )
    _id_index('follows')
    op.create_index(op.f('ix_follows_follower_id'), 'follows', ['follower_id'])
    op.create_index(op.f('ix_follows_followee_id'), 'follows', ['followee_id'])

    op.create_table('refresh_tokens',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('user_id', sa.Integer(), nullable=False),
                    sa.Column('jti', sa.String(length=64), nullable=False),
                    sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
                    sa.Column('revoked', sa.Boolean(), nullable=False,
                              server_default=sa.false()),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('refresh_tokens')
    op.create_index(op.f('ix_refresh_tokens_user_id'), 'refresh_tokens', ['user_id'])
    op.create_index(op.f('ix_refresh_tokens_jti'), 'refresh_tokens', ['jti'], unique=True)

    op.create_table('spots',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('name', sa.String(length=100), nullable=False),
                    sa.Column('content', sa.Text(), nullable=False),
                    sa.Column('city', sa.String(length=100), nullable=False, server_default=''),
                    sa.Column('latitude', sa.Float(), nullable=False),
                    sa.Column('longitude', sa.Float(), nullable=False),
                    sa.Column('difficulty', sa.String(), nullable=False,
                              server_default='Unknown'),
                    sa.Column('submitted_by', sa.Integer(), nullable=False),
                    sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
                    sa.Column('status', sa.String(), nullable=False, server_default='pending'),
                    sa.Column('best_time_to_visit', sa.String(length=100), nullable=False,
                              server_default=''),
                    sa.Column('unique_facts', sa.String(length=500), nullable=False,
                              server_default=''),
                    sa.Column('average_rating', sa.Float(), nullable=False, server_default='0'),
                    sa.Column('view360_image_url', sa.String(), nullable=False,
                              server_default=''),
                    sa.Column('view360_description', sa.String(length=200), nullable=False,
                              server_default=''),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.Column('updated_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['submitted_by'], ['users.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('spots')
    for column in ('name', 'latitude', 'longitude', 'submitted_by', 'status', 'created_at'):
        op.create_index(op.f(f'ix_spots_{column}'), 'spots', [column])

    # Spot children
    op.create_table('spot_tags',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('spot_id', sa.Integer(), nullable=False),
                    sa.Column('name', sa.String(), nullable=False),
                    sa.ForeignKeyConstraint(['spot_id'], ['spots.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('spot_tags')
    op.create_index(op.f('ix_spot_tags_spot_id'), 'spot_tags', ['spot_id'])
    op.create_index(op.f('ix_spot_tags_name'), 'spot_tags', ['name'])

    op.create_table('spot_photos',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('spot_id', sa.Integer(), nullable=False),
                    sa.Column('url', sa.String(), nullable=False),
                    sa.Column('uploaded_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['spot_id'], ['spots.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('spot_photos')
    op.create_index(op.f('ix_spot_photos_spot_id'), 'spot_photos', ['spot_id'])

    op.create_table('spot_likes',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('spot_id', sa.Integer(), nullable=False),
                    sa.Column('user_id', sa.Integer(), nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['spot_id'], ['spots.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id'),
                    sa.UniqueConstraint('spot_id', 'user_id', name='uq_spot_like')
                    )
    _id_index('spot_likes')
    op.create_index(op.f('ix_spot_likes_spot_id'), 'spot_likes', ['spot_id'])
    op.create_index(op.f('ix_spot_likes_user_id'), 'spot_likes', ['user_id'])

    op.create_table('spot_reviews',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('spot_id', sa.Integer(), nullable=False),
                    sa.Column('user_id', sa.Integer(), nullable=False),
                    sa.Column('username', sa.String(), nullable=False),
                    sa.Column('content', sa.String(length=500), nullable=False),
                    sa.Column('rating', sa.Integer(), nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['spot_id'], ['spots.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('spot_reviews')
    op.create_index(op.f('ix_spot_reviews_spot_id'), 'spot_reviews', ['spot_id'])
    op.create_index(op.f('ix_spot_reviews_user_id'), 'spot_reviews', ['user_id'])
    op.create_index(op.f('ix_spot_reviews_created_at'), 'spot_reviews', ['created_at'])

    op.create_table('spot_reports',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('spot_id', sa.Integer(), nullable=False),
                    sa.Column('reported_by', sa.Integer(), nullable=False),
                    sa.Column('reason', sa.String(length=200), nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['spot_id'], ['spots.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['reported_by'], ['users.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('spot_reports')
    op.create_index(op.f('ix_spot_reports_spot_id'), 'spot_reports', ['spot_id'])
    op.create_index(op.f('ix_spot_reports_reported_by'), 'spot_reports', ['reported_by'])

    # Community
    op.create_table('posts',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('title', sa.String(length=100), nullable=False),
                    sa.Column('content', sa.Text(), nullable=False),
                    sa.Column('location', sa.String(length=200), nullable=False),
                    sa.Column('user_id', sa.Integer(), nullable=False),
                    sa.Column('status', sa.String(), nullable=False, server_default='pending'),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.Column('updated_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('posts')
    op.create_index(op.f('ix_posts_user_id'), 'posts', ['user_id'])
    op.create_index(op.f('ix_posts_status'), 'posts', ['status'])
    op.create_index(op.f('ix_posts_created_at'), 'posts', ['created_at'])

    op.create_table('post_tags',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('post_id', sa.Integer(), nullable=False),
                    sa.Column('name', sa.String(length=50), nullable=False),
                    sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('post_tags')
    op.create_index(op.f('ix_post_tags_post_id'), 'post_tags', ['post_id'])
    op.create_index(op.f('ix_post_tags_name'), 'post_tags', ['name'])

    op.create_table('post_images',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('post_id', sa.Integer(), nullable=False),
                    sa.Column('url', sa.String(), nullable=False),
                    sa.Column('uploaded_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('post_images')
    op.create_index(op.f('ix_post_images_post_id'), 'post_images', ['post_id'])

    op.create_table('post_likes',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('post_id', sa.Integer(), nullable=False),
                    sa.Column('user_id', sa.Integer(), nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id'),
                    sa.UniqueConstraint('post_id', 'user_id', name='uq_post_like')
                    )
    _id_index('post_likes')
    op.create_index(op.f('ix_post_likes_post_id'), 'post_likes', ['post_id'])
    op.create_index(op.f('ix_post_likes_user_id'), 'post_likes', ['user_id'])

    op.create_table('post_comments',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('post_id', sa.Integer(), nullable=False),
                    sa.Column('user_id', sa.Integer(), nullable=False),
                    sa.Column('username', sa.String(), nullable=False),
                    sa.Column('text', sa.Text(), nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('post_comments')
    op.create_index(op.f('ix_post_comments_post_id'), 'post_comments', ['post_id'])
    op.create_index(op.f('ix_post_comments_user_id'), 'post_comments', ['user_id'])
    op.create_index(op.f('ix_post_comments_created_at'), 'post_comments', ['created_at'])

    op.create_table('notifications',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('user_id', sa.Integer(), nullable=False),
                    sa.Column('type', sa.String(), nullable=False),
                    sa.Column('related_id', sa.Integer(), nullable=True),
                    sa.Column('actor_id', sa.Integer(), nullable=True),
                    sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
                    sa.Column('created_at', sa.DateTime(timezone=True),
                              server_default=sa.text('now()'), nullable=True),
                    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['actor_id'], ['users.id'], ondelete='SET NULL'),
                    sa.PrimaryKeyConstraint('id')
                    )
    _id_index('notifications')
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'])
    op.create_index(op.f('ix_notifications_type'), 'notifications', ['type'])
    op.create_index(op.f('ix_notifications_created_at'), 'notifications', ['created_at'])


def downgrade() -> None:
    for table in (
        'notifications',
        'post_comments', 'post_likes', 'post_images', 'post_tags', 'posts',
        'spot_reports', 'spot_reviews', 'spot_likes', 'spot_photos', 'spot_tags', 'spots',
        'refresh_tokens', 'follows', 'user_interests', 'users',
    ):
        op.drop_table(table)
