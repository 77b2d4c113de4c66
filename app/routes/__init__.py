"""Routes package for the listings application."""


def register_routes(app):
    """Register all route blueprints with the application."""
    from .listings import listings_bp
    from .bookings import bookings_bp
    from .reviews import reviews_bp
    from .notifications import notifications_bp
    from .users import users_bp
    from .categories import categories_bp

    app.register_blueprint(listings_bp, url_prefix='/api/listings')
    app.register_blueprint(bookings_bp, url_prefix='/api/bookings')
    app.register_blueprint(reviews_bp, url_prefix='/api/reviews')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(categories_bp, url_prefix='/api/categories')
