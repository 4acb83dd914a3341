# Services package.
#
# Each module exposes async functions holding the business rules and
# database access for one aggregate:
#
#   planet_service     : planet create / read / update / delete + ownership writes
#   membership_service : join / approve / reject / leave / kick / roles / transfer
#   bookmark_service   : per-user planet bookmarks
#   article_service    : articles inside a planet
#   user_service       : identity records
#
# All service functions take an AsyncSession as their first argument and
# only flush; the router layer owns the transaction through ``get_db``.
# Permission checks live in ``app.policies`` and failures are raised as
# ``app.exceptions`` errors.
