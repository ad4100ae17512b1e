from app.api.admin.appointments import admin_appointments_bp
from app.api.admin.service_types import service_types_bp
from app.api.booking.appointments import appointments_bp
from app.api.communication.notifications import notifications_bp
from app.api.feedback.feedback import feedback_bp
from app.api.orders.orders import orders_bp
from app.routes.auth import auth_bp
from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv
from flasgger import Swagger
from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE
import os

load_dotenv()
from app.config import Config  # noqa: E402
from app.errors import register_error_handlers  # noqa: E402
from app.extensions import db  # noqa: E402
from app.utils.s3_utils import track_uploads  # noqa: E402


def create_app(config_overrides=None):
    print("Starting create_app()")
    app = Flask(__name__)
    try:
        app.config.from_object(Config)
        if config_overrides:
            app.config.update(config_overrides)
        print(f"Config loaded successfully ({len(app.config)} items)")

        CORS(app)
        print("CORS initialized")

        db.init_app(app)
        print("Database initialized")

        # Determine host based on environment
        host = os.environ.get("API_HOST", "127.0.0.1:5000")
        swagger_template = SWAGGER_TEMPLATE.copy()
        swagger_template["host"] = host

        Swagger(app, config=SWAGGER_CONFIG, template=swagger_template)
        print("Swagger initialized - Access at /api/docs")

        register_error_handlers(app)
        track_uploads(app)

        blueprints = [
            auth_bp,
            service_types_bp,
            appointments_bp,
            admin_appointments_bp,
            orders_bp,
            notifications_bp,
            feedback_bp,
        ]

        for bp in blueprints:
            app.register_blueprint(bp)
            print(f"  ✓ {bp.name} registered")

        @app.route("/")
        def home():
            """
            Root endpoint - API status
            ---
            tags:
              - Utility
            responses:
              200:
                description: API is running
            """
            return {"status": "ok", "message": "Backend is running!"}, 200

        if app.config.get("ENABLE_SCHEDULER"):
            from app.scheduler import init_scheduler

            init_scheduler(app)

        print(f"Total routes registered: {len(list(app.url_map.iter_rules()))}")

    except Exception as e:
        print(f"Error during app creation: {e}")
        import traceback

        print(f"Full traceback: {traceback.format_exc()}")
        raise

    print("create_app() completed successfully")
    return app


app = create_app()


if __name__ == "__main__":
    # Create a .env containing:
    #       MYSQL_PUBLIC_URL= mysql+pymysql://<USER>:<PASSWORD>@<HOST>:<PORT>/tailor_shop  # noqa: E501

    port = int(os.environ.get("PORT", 5000))
    app.run(
        host="0.0.0.0", port=port, debug=os.environ.get("FLASK_ENV") != "production"
    )
