# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   auth_service    : registration and login
#   user_service    : current user, profiles, follow graph
#   article_service : CRUD, feed, favorites and tags for Article
#   comment_service : comments scoped to an Article
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency, and take the viewer's id as an explicit
# argument wherever a response carries viewer-relative flags.
