from django.conf import settings
from django.db import models
from django.db.models import Sum


class Cart(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="cart")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Cart({self.user})"

    def item_count(self):
        """Number of units in the cart (sum of line quantities)."""
        return self.cart_items.aggregate(total=Sum("quantity"))["total"] or 0


class CartItem(models.Model):
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name="cart_items")
    sku = models.CharField(max_length=64)
    quantity = models.PositiveIntegerField(default=1)
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("cart", "sku")

    def __str__(self):
        return f"{self.sku} x{self.quantity}"
