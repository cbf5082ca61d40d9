from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from wedding_quiz.routes import main
    flask_app.register_blueprint(main)

    from wedding_quiz.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api/game')

    from wedding_quiz.api.quiz import quiz
    flask_app.register_blueprint(quiz, url_prefix='/api/quiz')

    from wedding_quiz.api.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/api/admin')

    from wedding_quiz.services.quiz.errors import QuizError

    @flask_app.errorhandler(QuizError)
    def handle_quiz_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    from wedding_quiz.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    @click.option('--admin', 'admin_line_id', default=None, help='LINE id to register as admin.')
    def db_reset_command(admin_line_id):
        """Drops, recreates, and seeds the database."""
        from wedding_quiz.models import AdminLineId, Question
        from wedding_quiz.services.quiz.state import get_state
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            if admin_line_id:
                db.session.add(AdminLineId(line_id=admin_line_id))

            # Seed a small question set
            question_set = flask_app.config.get('DEFAULT_QUESTION_SET', 'default')
            samples = [
                ('Where did the couple first meet?', 'B'),
                ('Which city hosted the proposal?', 'A'),
                ('What is the name of their dog?', 'D'),
            ]
            for order, (text, answer) in enumerate(samples, start=1):
                db.session.add(Question(
                    question_text=text,
                    option_a='Option A', option_b='Option B',
                    option_c='Option C', option_d='Option D',
                    correct_answer=answer,
                    display_order=order,
                    category=question_set,
                    points=100,
                    time_limit=3,
                    speed_bonus_enabled=True,
                    max_bonus_points=20,
                ))
            get_state()
            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('add-admin')
    @click.argument('line_id')
    def add_admin_command(line_id):
        """Registers a LINE id as quiz administrator."""
        from wedding_quiz.models import AdminLineId
        with flask_app.app_context():
            if AdminLineId.query.filter_by(line_id=line_id).first():
                print(f'{line_id} is already an admin')
                return
            db.session.add(AdminLineId(line_id=line_id))
            db.session.commit()
            print(f'{line_id} registered as admin')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(add_admin_command)

    return flask_app
