from . import voila

FETCHERS = {
    "voila": voila.fetch_category,
}
