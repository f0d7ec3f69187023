from .quadrature import volume, facet, QuadratureRule, QuadratureRegistry
__all__ = ['volume', 'facet', 'QuadratureRule', 'QuadratureRegistry']
