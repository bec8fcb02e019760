"""
Permission classes for tenant-scoped API endpoints.

- IsRestaurantStaff: the user is active staff of the restaurant the request
  (or the object) belongs to

The restaurant is resolved from, in order:
    1. the object's ``restaurant_id`` (object-level checks)
    2. a ``restaurant_id`` URL kwarg
    3. ``restaurant_id`` in the query string or request body
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

from restaurants.models import RestaurantStaff

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


def get_request_restaurant_id(request: Request, view: APIView):
    """Return the restaurant id a request targets, or None."""
    restaurant_id = view.kwargs.get("restaurant_id") if hasattr(view, "kwargs") else None
    if restaurant_id:
        return restaurant_id
    restaurant_id = request.query_params.get("restaurant_id")
    if restaurant_id:
        return restaurant_id
    if hasattr(request.data, "get"):
        return request.data.get("restaurant_id")
    return None


class IsRestaurantStaff(permissions.BasePermission):
    """
    Allows access only to active staff of the targeted restaurant.

    Requests that carry no restaurant id pass the view-level check; the view
    must then scope its queryset to the user's memberships.
    """

    message = "You are not a staff member of this restaurant."

    def has_permission(self, request: Request, view: APIView) -> bool:
        if not request.user or not request.user.is_authenticated:
            return False
        restaurant_id = get_request_restaurant_id(request, view)
        if not restaurant_id:
            return True
        return RestaurantStaff.is_member(request.user, restaurant_id)

    def has_object_permission(self, request: Request, view: APIView, obj) -> bool:
        return RestaurantStaff.is_member(request.user, obj.restaurant_id)
