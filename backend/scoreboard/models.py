from scoreboard import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone


GAME_TYPES = ('classic_10', 'classic_8', 'tournament', 'rating', 'custom')
OUTCOMES = ('civilians_win', 'mafia_win', 'draw')  # None while the game is in progress
ROLES = ('civilian', 'sheriff', 'mafia', 'don')


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Federation(db.Model):
    __tablename__ = 'federation'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    country = db.Column(db.String(64), nullable=True)
    city = db.Column(db.String(64), nullable=True)
    clubs = db.relationship('Club', back_populates='federation')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'country': self.country,
            'city': self.city,
        }


class Club(db.Model):
    __tablename__ = 'club'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    country = db.Column(db.String(64), nullable=True)
    city = db.Column(db.String(64), nullable=True)
    federation_id = db.Column(db.Integer, db.ForeignKey('federation.id', ondelete='SET NULL'), nullable=True)
    federation = db.relationship('Federation', back_populates='clubs')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'country': self.country,
            'city': self.city,
            'federation_id': self.federation_id,
            'federation_name': self.federation.name if self.federation else None,
        }


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    surname = db.Column(db.String(64), nullable=True)
    nickname = db.Column(db.String(64), nullable=True)
    club_id = db.Column(db.Integer, db.ForeignKey('club.id', ondelete='SET NULL'), nullable=True)
    club = db.relationship('Club')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'surname': self.surname,
            'nickname': self.nickname,
            'club_id': self.club_id,
            'club_name': self.club.name if self.club else None,
        }


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=True)
    game_type = db.Column(db.String(32), nullable=False, default='classic_10')
    outcome = db.Column(db.String(32), nullable=True)  # civilians_win, mafia_win, draw; NULL while in progress
    club_id = db.Column(db.Integer, db.ForeignKey('club.id', ondelete='SET NULL'), nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    participations = db.relationship(
        'Participation',
        back_populates='game',
        order_by='Participation.slot_number',
        cascade='all, delete-orphan',
    )
    rating_links = db.relationship('RatingGame', back_populates='game', cascade='all, delete-orphan')

    def to_dict(self, include_players=True):
        data = {
            'id': self.id,
            'name': self.name,
            'game_type': self.game_type,
            'outcome': self.outcome,
            'club_id': self.club_id,
            'created_by_id': self.created_by_id,
            'created_at': _iso(self.created_at),
        }
        if include_players:
            data['players'] = [p.to_dict() for p in self.participations]
        return data


class Participation(db.Model):
    """One seat in one game."""
    __tablename__ = 'game_player'
    __table_args__ = (
        db.UniqueConstraint('game_id', 'slot_number', name='uq_game_player_slot'),
        db.UniqueConstraint('game_id', 'player_id', name='uq_game_player_player'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id', ondelete='CASCADE'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id', ondelete='CASCADE'), nullable=False, index=True)
    role = db.Column(db.String(16), nullable=False)
    slot_number = db.Column(db.Integer, nullable=False)
    fouls = db.Column(db.Integer, nullable=False, default=0)
    # Free text from seat entry; see services.ratings.points
    raw_bonus = db.Column(db.Text, nullable=True)
    game = db.relationship('Game', back_populates='participations')
    player = db.relationship('Player')

    def to_dict(self):
        return {
            'id': self.id,
            'player_id': self.player_id,
            'name': self.player.name if self.player else None,
            'nickname': self.player.nickname if self.player else None,
            'role': self.role,
            'slot_number': self.slot_number,
            'fouls': self.fouls,
            'raw_bonus': self.raw_bonus,
        }


class Rating(db.Model):
    __tablename__ = 'rating'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    club_id = db.Column(db.Integer, db.ForeignKey('club.id', ondelete='SET NULL'), nullable=True)
    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    # Set when a recompute could not commit; cleared by the next successful one
    results_stale = db.Column(db.Boolean, default=False, nullable=False)
    results_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    owner = db.relationship('User')
    club = db.relationship('Club')
    game_links = db.relationship('RatingGame', back_populates='rating', cascade='all, delete-orphan')
    results = db.relationship('RatingResult', back_populates='rating', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'owner_id': self.owner_id,
            'owner_name': self.owner.username if self.owner else None,
            'club_id': self.club_id,
            'club_name': self.club.name if self.club else None,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'is_active': self.is_active,
            'results_stale': self.results_stale,
            'results_updated_at': _iso(self.results_updated_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class RatingGame(db.Model):
    """Membership of a game in a rating."""
    __tablename__ = 'rating_game'
    __table_args__ = (
        db.UniqueConstraint('rating_id', 'game_id', name='uq_rating_game'),
    )
    id = db.Column(db.Integer, primary_key=True)
    rating_id = db.Column(db.Integer, db.ForeignKey('rating.id', ondelete='CASCADE'), nullable=False, index=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id', ondelete='CASCADE'), nullable=False, index=True)
    added_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    rating = db.relationship('Rating', back_populates='game_links')
    game = db.relationship('Game', back_populates='rating_links')


class RatingResult(db.Model):
    """Per-player aggregate for a rating. Written only by the recompute engine."""
    __tablename__ = 'rating_result'
    __table_args__ = (
        db.UniqueConstraint('rating_id', 'player_id', name='uq_rating_result_player'),
    )
    id = db.Column(db.Integer, primary_key=True)
    rating_id = db.Column(db.Integer, db.ForeignKey('rating.id', ondelete='CASCADE'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id', ondelete='CASCADE'), nullable=False)
    points = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    games_played = db.Column(db.Integer, nullable=False, default=0)
    wins = db.Column(db.Integer, nullable=False, default=0)
    civilian_wins = db.Column(db.Integer, nullable=False, default=0)
    mafia_wins = db.Column(db.Integer, nullable=False, default=0)
    don_games = db.Column(db.Integer, nullable=False, default=0)
    sheriff_games = db.Column(db.Integer, nullable=False, default=0)
    first_outs = db.Column(db.Integer, nullable=False, default=0)
    rating = db.relationship('Rating', back_populates='results')
    player = db.relationship('Player')

    def to_dict(self):
        player = self.player
        return {
            'player_id': self.player_id,
            'name': player.name if player else None,
            'surname': player.surname if player else None,
            'nickname': player.nickname if player else None,
            'club_name': player.club.name if player and player.club else None,
            'points': float(self.points or 0),
            'games_played': self.games_played,
            'wins': self.wins,
            'civilian_wins': self.civilian_wins,
            'mafia_wins': self.mafia_wins,
            'don_games': self.don_games,
            'sheriff_games': self.sheriff_games,
            'first_outs': self.first_outs,
        }
