from farewatch.models.watch import PriceWatch

__all__ = [
    "PriceWatch",
]
