from .guess_papers import router as guess_papers_router
from .saved_tests import router as saved_tests_router
from .test_paper import router as test_paper_router

routes = [
    test_paper_router,
    saved_tests_router,
    guess_papers_router,
]
