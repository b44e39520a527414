import logging

from common.exceptions import NotFound, ValidationError
from .models import FavoritePlace

logger = logging.getLogger(__name__)

MAX_FAVORITES = 20


def list_favorites(user):
    return FavoritePlace.objects.filter(user=user).order_by('-created_at', '-id')


def add_favorite(user, name, address, latitude, longitude, type='other', icon='') -> FavoritePlace:
    if FavoritePlace.objects.filter(user=user).count() >= MAX_FAVORITES:
        raise ValidationError(f"You can save at most {MAX_FAVORITES} places")
    return FavoritePlace.objects.create(
        user=user,
        name=name,
        address=address,
        latitude=latitude,
        longitude=longitude,
        type=type or 'other',
        icon=icon or '',
    )


def delete_favorite(user, favorite_id: int) -> None:
    deleted, _ = FavoritePlace.objects.filter(pk=favorite_id, user=user).delete()
    if not deleted:
        raise NotFound("Favorite not found")
    logger.info("User %s removed favorite %s", user.pk, favorite_id)
