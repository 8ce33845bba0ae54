# Services package.
#
# Each module exposes a focused set of async functions over one concern:
#
#   listing_service   the four article listings plus single-article show
#   feed_service      followed-author resolution for the feed
#   favorite_service  favorite edges and the per-page annotator
#   article_service   article create / update / delete, slug lookup
#   user_service      users and the follow graph (the user directory)
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
