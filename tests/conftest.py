import pytest

from catview import create_app
from catview.extensions import db
from catview.models import Category, CategoryRestriction, User, add_category


@pytest.fixture
def app():
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "CATEGORIES_PER_PAGE": 20,
            "MAX_CATEGORY_DEPTH": 2,
        }
    )
    with app.app_context():
        db.create_all()
        for username, level in (("admin", "admin"), ("reader", "operator"), ("manager", "manager")):
            user = User(username=username, level=level)
            user.set_password("secret")
            db.session.add(user)
        db.session.commit()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def tree(app):
    """Two top-level branches with hidden categories in each.

    Arts
      Archive (hidden)
        Painting
        Sculpture
      Music
    Science
      Physics
      Chemistry (hidden)
    """

    with app.app_context():
        arts = add_category("Arts", idnumber="ARTS", coursecount=3)
        archive = add_category("Archive", arts, visible=False, visibleold=False)
        painting = add_category("Painting", archive, coursecount=2)
        sculpture = add_category("Sculpture", archive)
        music = add_category("Music", arts, theme="boost")
        science = add_category("Science", idnumber="SCI")
        physics = add_category("Physics", science)
        chemistry = add_category("Chemistry", science, visible=False, visibleold=False)
        db.session.commit()
        return {
            category.name.lower(): category.id
            for category in (arts, archive, painting, sculpture, music, science, physics, chemistry)
        }


@pytest.fixture
def users(app):
    with app.app_context():
        return {user.username: user.id for user in User.query.all()}


def login(client, username, password="secret"):
    return client.post("/login", json={"username": username, "password": password})


def restrict(user_id, category_id, reason="locked"):
    db.session.add(CategoryRestriction(user_id=user_id, category_id=category_id, reason=reason))
    db.session.commit()


def load_user(username):
    return User.query.filter_by(username=username).one()


def hide(category_id):
    category = db.session.get(Category, category_id)
    category.visible = False
    db.session.commit()
