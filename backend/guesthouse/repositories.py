"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
sliders, restaurants, transport routes, explore places, feedback).
Repositories return SQLModel objects. Simple aggregates commit in
`create`; `SliderRepository` never commits because every slider write
is part of a larger ordering transaction owned by the caller.
"""

from typing import List, Optional, Tuple

from sqlalchemy import delete, func, or_, update
from sqlmodel import Session, select

from . import models


def _like(q: str) -> str:
    return f"%{q}%"


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email (case-insensitive) or `None`."""
        stmt = select(models.User).where(func.lower(models.User.email) == email.strip().lower())
        return self.session.exec(stmt).first()

    def get(self, user_id: str) -> Optional[models.User]:
        return self.session.get(models.User, user_id)


class SliderRepository:
    """Reads and staged writes over the slider position column.

    Position writes go through the session's connection so the number of
    rows actually touched can be checked by the caller.
    """
    def __init__(self, session: Session):
        self.session = session

    def list_ordered(self, published: Optional[bool] = None, status: Optional[str] = None) -> List[models.Slider]:
        stmt = select(models.Slider)
        if published is not None:
            stmt = stmt.where(models.Slider.is_published == published)
        if status:
            stmt = stmt.where(models.Slider.status == status)
        stmt = stmt.order_by(models.Slider.position, models.Slider.created_at)
        return self.session.exec(stmt).all()

    def get(self, slider_id: str) -> Optional[models.Slider]:
        return self.session.get(models.Slider, slider_id)

    # Position reads lock the rows they return on server databases
    # (SQLite renders no FOR UPDATE and relies on conditional writes).

    def position_of(self, slider_id: str) -> Optional[int]:
        """Return the stored position of `slider_id`, read from the database."""
        stmt = select(models.Slider.position).where(models.Slider.id == slider_id).with_for_update()
        return self.session.exec(stmt).first()

    def ids_in_order(self) -> List[str]:
        stmt = select(models.Slider.id).order_by(models.Slider.position, models.Slider.created_at).with_for_update()
        return list(self.session.exec(stmt).all())

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Slider)).one()

    def max_position(self) -> int:
        return self.session.exec(select(func.max(models.Slider.position))).one() or 0

    def order_summary(self) -> Tuple[int, Optional[int], Optional[int]]:
        """Return `(count, min position, max position)`."""
        stmt = select(func.count(), func.min(models.Slider.position), func.max(models.Slider.position))
        total, low, high = self.session.exec(stmt).one()
        return total, low, high

    def neighbour(self, position: int, direction: str) -> Optional[Tuple[str, int]]:
        """Return `(id, position)` of the adjacent slide above or below `position`."""
        stmt = select(models.Slider.id, models.Slider.position)
        if direction == "up":
            stmt = stmt.where(models.Slider.position < position).order_by(models.Slider.position.desc())
        else:
            stmt = stmt.where(models.Slider.position > position).order_by(models.Slider.position.asc())
        row = self.session.exec(stmt.limit(1).with_for_update()).first()
        return (row[0], row[1]) if row else None

    def occupant(self, position: int) -> Optional[str]:
        stmt = select(models.Slider.id).where(models.Slider.position == position).with_for_update()
        return self.session.exec(stmt).first()

    def add(self, slider: models.Slider) -> models.Slider:
        self.session.add(slider)
        self.session.flush()
        return slider

    def set_position(self, slider_id: str, position: int, expected: Optional[int] = None) -> int:
        """Write one position and return the number of rows updated.

        With `expected` the row is only updated while it still sits at
        that position, so a concurrent change shows up as a zero count.
        """
        stmt = update(models.Slider).where(models.Slider.id == slider_id)
        if expected is not None:
            stmt = stmt.where(models.Slider.position == expected)
        return self.session.connection().execute(stmt.values(position=position)).rowcount

    def shift_all(self, offset: int) -> int:
        """Move every slide by `offset` in one statement.

        With `offset` above the current maximum every new value lands
        outside 1..N and no two rows collide at any point.
        """
        stmt = update(models.Slider).values(position=models.Slider.position + offset)
        return self.session.connection().execute(stmt).rowcount

    def delete(self, slider_id: str) -> int:
        stmt = delete(models.Slider).where(models.Slider.id == slider_id)
        return self.session.connection().execute(stmt).rowcount


class RestaurantRepository:
    """CRUD and search helpers for `Restaurant` rows."""
    def __init__(self, session: Session):
        self.session = session

    def search(self, published: Optional[bool], cuisine: str = "", q: str = "", limit: int = 500) -> List[models.Restaurant]:
        stmt = select(models.Restaurant)
        if published is not None:
            stmt = stmt.where(models.Restaurant.is_published == published)
        if cuisine:
            stmt = stmt.where(models.Restaurant.cuisine == cuisine)
        if q:
            stmt = stmt.where(or_(models.Restaurant.name.like(_like(q)), models.Restaurant.address.like(_like(q))))
        stmt = stmt.order_by(models.Restaurant.created_at.desc()).limit(limit)
        return self.session.exec(stmt).all()

    def get(self, restaurant_id: str) -> Optional[models.Restaurant]:
        return self.session.get(models.Restaurant, restaurant_id)

    def name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        stmt = select(models.Restaurant.id).where(func.lower(models.Restaurant.name) == name.strip().lower())
        if exclude_id:
            stmt = stmt.where(models.Restaurant.id != exclude_id)
        return self.session.exec(stmt).first() is not None

    def phones(self, exclude_id: Optional[str] = None) -> List[str]:
        """Return all stored phone numbers, optionally skipping one row."""
        stmt = select(models.Restaurant.phone).where(models.Restaurant.phone.is_not(None))
        if exclude_id:
            stmt = stmt.where(models.Restaurant.id != exclude_id)
        return list(self.session.exec(stmt).all())

    def save(self, restaurant: models.Restaurant) -> models.Restaurant:
        self.session.add(restaurant)
        self.session.commit()
        self.session.refresh(restaurant)
        return restaurant

    def delete(self, restaurant: models.Restaurant) -> None:
        self.session.delete(restaurant)
        self.session.commit()


class TransportRouteRepository:
    """Queries for `TransportRoute` rows and the series catalog."""
    def __init__(self, session: Session):
        self.session = session

    def search(self, published: Optional[bool], series: str = "", query: str = "") -> List[models.TransportRoute]:
        stmt = select(models.TransportRoute)
        if published is not None:
            stmt = stmt.where(models.TransportRoute.is_published == published)
        if series:
            stmt = stmt.where(models.TransportRoute.series == series)
        if query:
            stmt = stmt.where(or_(models.TransportRoute.code.like(_like(query)), models.TransportRoute.title.like(_like(query))))
        return self.session.exec(stmt.order_by(models.TransportRoute.code)).all()

    def get(self, route_id: str) -> Optional[models.TransportRoute]:
        return self.session.get(models.TransportRoute, route_id)

    def get_published_by_code(self, code: str) -> Optional[models.TransportRoute]:
        stmt = select(models.TransportRoute).where(
            models.TransportRoute.code == code,
            models.TransportRoute.is_published == True,  # noqa: E712
        )
        return self.session.exec(stmt).first()

    def code_taken(self, code: str, exclude_id: Optional[str] = None) -> bool:
        stmt = select(models.TransportRoute.id).where(models.TransportRoute.code == code)
        if exclude_id:
            stmt = stmt.where(models.TransportRoute.id != exclude_id)
        return self.session.exec(stmt).first() is not None

    def list_by_series(self, name: str) -> List[models.TransportRoute]:
        stmt = select(models.TransportRoute).where(models.TransportRoute.series == name)
        return self.session.exec(stmt).all()

    def distinct_series(self) -> List[str]:
        stmt = (
            select(models.TransportRoute.series)
            .where(models.TransportRoute.series.is_not(None))
            .distinct()
            .order_by(models.TransportRoute.series)
        )
        return [s for s in self.session.exec(stmt).all() if s]

    def active_catalog(self) -> List[str]:
        stmt = select(models.RouteSeries.name).where(models.RouteSeries.active == True).order_by(models.RouteSeries.name)  # noqa: E712
        return list(self.session.exec(stmt).all())

    def get_series(self, name: str) -> Optional[models.RouteSeries]:
        return self.session.get(models.RouteSeries, name)

    def save(self, route: models.TransportRoute) -> models.TransportRoute:
        self.session.add(route)
        self.session.commit()
        self.session.refresh(route)
        return route


class ExplorePlaceRepository:
    """CRUD and search helpers for `ExplorePlace` rows."""
    def __init__(self, session: Session):
        self.session = session

    def search(self, published: Optional[bool], category: str = "", q: str = "") -> List[models.ExplorePlace]:
        stmt = select(models.ExplorePlace)
        if published is not None:
            stmt = stmt.where(models.ExplorePlace.is_published == published)
        if category:
            stmt = stmt.where(models.ExplorePlace.category == category)
        if q:
            stmt = stmt.where(or_(models.ExplorePlace.name.like(_like(q)), models.ExplorePlace.description.like(_like(q))))
        return self.session.exec(stmt.order_by(models.ExplorePlace.created_at.desc())).all()

    def get(self, place_id: str) -> Optional[models.ExplorePlace]:
        return self.session.get(models.ExplorePlace, place_id)

    def name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        stmt = select(models.ExplorePlace.id).where(models.ExplorePlace.name == name)
        if exclude_id:
            stmt = stmt.where(models.ExplorePlace.id != exclude_id)
        return self.session.exec(stmt).first() is not None

    def categories(self) -> List[str]:
        stmt = (
            select(models.ExplorePlace.category)
            .where(models.ExplorePlace.category.is_not(None))
            .distinct()
            .order_by(models.ExplorePlace.category)
        )
        return [c for c in self.session.exec(stmt).all() if c]

    def save(self, place: models.ExplorePlace) -> models.ExplorePlace:
        self.session.add(place)
        self.session.commit()
        self.session.refresh(place)
        return place

    def delete(self, place: models.ExplorePlace) -> None:
        self.session.delete(place)
        self.session.commit()


class FeedbackRepository:
    """Persist and filter visitor feedback."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, feedback: models.Feedback) -> models.Feedback:
        self.session.add(feedback)
        self.session.commit()
        self.session.refresh(feedback)
        return feedback

    def search(self, handled: Optional[bool] = None, q: str = "") -> List[models.Feedback]:
        stmt = select(models.Feedback)
        if handled is not None:
            stmt = stmt.where(models.Feedback.handled == handled)
        if q:
            stmt = stmt.where(or_(models.Feedback.name.like(_like(q)), models.Feedback.email.like(_like(q))))
        return self.session.exec(stmt.order_by(models.Feedback.created_at.desc())).all()

    def get(self, feedback_id: str) -> Optional[models.Feedback]:
        return self.session.get(models.Feedback, feedback_id)
