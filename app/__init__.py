"""
Gamerboxd application package.

Layered architecture:

  app/repositories/   pure I/O, SQLAlchemy queries and writes over a session.
  app/services/       business logic, validation, rank conflicts, tagged results.

Route handlers in ``gamerboxd_web.py`` open a session per request and hand it
to the services, so the HTTP layer never touches the ORM directly.
"""
