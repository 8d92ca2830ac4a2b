from django import template
from django.utils.html import json_script
from django.utils.safestring import mark_safe

from badge.conf import get_badge_settings
from badge.context_processors import badge_client_config
from badge.services.counts import CartStoreUnavailable, get_cart_count
from badge.services.patcher import patch

register = template.Library()


def _context_count(context):
    count = context.get("cart_count")
    if count is not None:
        return count
    request = context.get("request")
    if request is None:
        return 0
    try:
        return get_cart_count(request)
    except CartStoreUnavailable:
        return 0


class CartBadgeMenuNode(template.Node):
    def __init__(self, nodelist, count=None):
        self.nodelist = nodelist
        self.count = count

    def render(self, context):
        fragment = self.nodelist.render(context)
        count = self.count.resolve(context) if self.count is not None else _context_count(context)
        return mark_safe(patch(fragment, count, get_badge_settings().badge_class))


@register.tag(name="cart_badge_menu")
def do_cart_badge_menu(parser, token):
    """
    Patch the rendered navigation between the tags with the cart badge.

        {% cart_badge_menu %}<ul>...</ul>{% endcart_badge_menu %}
        {% cart_badge_menu some_count %}...{% endcart_badge_menu %}
    """
    bits = token.split_contents()
    if len(bits) > 2:
        raise template.TemplateSyntaxError(f"'{bits[0]}' takes at most one argument (the count)")
    count = parser.compile_filter(bits[1]) if len(bits) == 2 else None
    nodelist = parser.parse(("endcart_badge_menu",))
    parser.delete_first_token()
    return CartBadgeMenuNode(nodelist, count)


@register.filter(is_safe=True)
def cart_badge(value, count):
    """Add the badge to an already rendered menu string: {{ menu|cart_badge:cart_count }}"""
    return patch(value, count, get_badge_settings().badge_class)


@register.simple_tag(takes_context=True)
def cart_badge_config(context):
    config = context.get("cart_badge_config")
    if config is None:
        request = context.get("request")
        config = badge_client_config(request) if request is not None else {}
    return json_script(config, get_badge_settings().config_element_id)
