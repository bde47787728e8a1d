# mini_bem/kernel/integrate.py
"""
ELEMENT INTEGRATOR: influence of one constant element on a field point
======================================================================

PURPOSE:
--------
The fictitious-stress method puts a uniform line load (a "source") of unit
shear or unit normal intensity on every boundary element. This module returns
the displacement and stress such a source produces at a field point.

FULL SPACE:
-----------
The Kelvin point-load solution integrates in closed form over a straight
element. Working in the element frame (x' along the tangent, y' along the
normal, origin at the midpoint, half-length a):

    ttd   = atan((x'-a)/y') - atan((x'+a)/y')
    lgrd  = ln r1 - ln r2                 r1, r2 = distances to the ends
    xyr2d = 2 y' ((x'-a)/r1^2 - (x'+a)/r2^2)
    y2r2d = 2 y'^2 (1/r1^2 - 1/r2^2)

and every response is a short combination of these four terms. No
quadrature is needed.

SINGULAR LIMITS:
----------------
- Point on the element line (|y'| <= 1e-4): ttd takes its limit from the
  rock side (local y' < 0), pi on the element and 0 beyond its ends.
  This covers the collocation point at the element's own midpoint.
- Point at an element end (r^2 < 1e-8): the coefficients are set to zero.

HALF SPACE:
-----------
With a traction-free ground surface y = ys, the Melan complementary
solution is added. Its kernel has no compact closed form along an inclined
element, so it is integrated by Gauss-Legendre quadrature. The order grows
as the field point nears the image of the element.

USAGE:
------
    integrator = ElementIntegrator(material)
    coeffs = integrator.compute_influence((0.0, -3.0), element)
    coeffs.normal   # (ux, uy, sxx, syy, sxy) for a unit normal source

The batched form `influence_arrays` broadcasts points against elements and
is what assembly and field evaluation call.
"""

import logging
import math
from functools import lru_cache
from typing import Optional, Tuple

import numpy as np

from ..model import (
    BoundaryElement,
    ElementArrays,
    InfluenceCoefficients,
    Material,
    PlaneMode,
)

logger = logging.getLogger(__name__)

ON_LINE_TOL = 1e-4
ENDPOINT_TOL = 1e-8
IMAGE_POINT_TOL = 1e-16  # squared distance to an image quadrature point

# (squared distance limit in units of (2L)^2, Gauss order); beyond the last: 3
QUADRATURE_BANDS = ((4.0, 15), (9.0, 10), (36.0, 5))
FAR_ORDER = 3


@lru_cache(maxsize=None)
def gauss_legendre(order: int) -> Tuple[np.ndarray, np.ndarray]:
    """Gauss-Legendre abscissae and weights on [-1, 1]."""
    points, weights = np.polynomial.legendre.leggauss(order)
    points.setflags(write=False)
    weights.setflags(write=False)
    return points, weights


def quadrature_order(distance_sq, element_length):
    """Gauss order for each squared point-to-image distance."""
    scale = (2.0 * np.asarray(element_length)) ** 2
    d2 = np.asarray(distance_sq)
    conditions = [d2 <= factor * scale for factor, _ in QUADRATURE_BANDS]
    choices = [order for _, order in QUADRATURE_BANDS]
    return np.select(conditions, choices, default=FAR_ORDER)


def rotate_to_global(local, cos, sin):
    """Rotate (ux, uy, sxx, syy, sxy) from an element frame to global axes."""
    u0, u1, s_xx, s_yy, s_xy = local
    cc, ss, cs = cos * cos, sin * sin, cos * sin
    return (
        u0 * cos - u1 * sin,
        u0 * sin + u1 * cos,
        s_xx * cc + s_yy * ss - 2.0 * s_xy * cs,
        s_xx * ss + s_yy * cc + 2.0 * s_xy * cs,
        cs * (s_xx - s_yy) + s_xy * (cc - ss),
    )


class ElementIntegrator:
    """
    Influence coefficients of constant elements (pure, thread-safe).

    Parameters:
    -----------
    material : Material
        Elastic constants entering the fundamental solution
    plane_mode : PlaneMode
        Plane strain (default) or plane stress
    """

    def __init__(self, material: Material, plane_mode: PlaneMode = PlaneMode.PLANE_STRAIN):
        self.material = material
        self.plane_mode = plane_mode
        self.constants = material.kernel_constants(plane_mode)

    def compute_influence(
        self,
        point,
        element: BoundaryElement,
        ground_surface_y: Optional[float] = None,
        half_space: bool = False,
    ) -> InfluenceCoefficients:
        """
        Influence of unit sources on `element` at a single field point.

        Returns plain floats. The caller is responsible for the half-space
        precondition (ground surface above the element).
        """
        arrays = ElementArrays.from_elements([element])
        px = np.array([float(point[0])])
        py = np.array([float(point[1])])
        coeffs = self.influence_arrays(px, py, arrays, ground_surface_y, half_space)
        return InfluenceCoefficients(
            shear=tuple(float(v[0]) for v in coeffs.shear),
            normal=tuple(float(v[0]) for v in coeffs.normal),
        )

    def influence_arrays(
        self,
        px,
        py,
        elements: ElementArrays,
        ground_surface_y: Optional[float] = None,
        half_space: bool = False,
    ) -> InfluenceCoefficients:
        """
        Batched influence coefficients.

        px, py and the element arrays are broadcast against each other, so
        points shaped (P, 1) with elements.as_row() give (P, N) arrays.
        """
        if half_space and ground_surface_y is None:
            raise ValueError("half_space=True needs a ground_surface_y")

        shear, normal = self._full_space(px, py, elements)
        if half_space:
            img_shear, img_normal = self._image(px, py, elements, float(ground_surface_y))
            shear = tuple(a + b for a, b in zip(shear, img_shear))
            normal = tuple(a + b for a, b in zip(normal, img_normal))
        return InfluenceCoefficients(shear=shear, normal=normal)

    # ------------------------------------------------------------------
    # Full-space kernel
    # ------------------------------------------------------------------

    def _full_space(self, px, py, el: ElementArrays):
        kappa, str_cof, dsp_cof, _ = self.constants
        c, s, a = el.cos, el.sin, el.half_length

        dx = px - el.mid_x
        dy = py - el.mid_y
        x = dx * c + dy * s
        y = dy * c - dx * s

        xmat = x - a
        xmab = x + a
        r2t = xmat * xmat + y * y
        r2b = xmab * xmab + y * y
        at_end = (r2t < ENDPOINT_TOL) | (r2b < ENDPOINT_TOL)
        r2t = np.where(at_end, 1.0, r2t)
        r2b = np.where(at_end, 1.0, r2b)

        on_line = np.abs(y) <= ON_LINE_TOL
        y_safe = np.where(on_line, 1.0, y)
        ttd = np.where(
            on_line,
            0.5 * (np.copysign(math.pi, xmab) - np.copysign(math.pi, xmat)),
            np.arctan(xmat / y_safe) - np.arctan(xmab / y_safe),
        )

        lgrt = 0.5 * np.log(r2t)
        lgrb = 0.5 * np.log(r2b)
        lgrd = lgrt - lgrb
        xyr2d = 2.0 * y * (xmat / r2t - xmab / r2b)
        y2r2d = 2.0 * (y * y / r2t - y * y / r2b)

        # Unit normal source
        normal_local = (
            -y * lgrd * dsp_cof,
            (kappa * (xmat * (lgrt - 1.0) - xmab * (lgrb - 1.0)) + y * (kappa - 1.0) * ttd) * dsp_cof,
            ((3.0 - kappa) * ttd - xyr2d) * str_cof,
            ((kappa + 1.0) * ttd + xyr2d) * str_cof,
            ((kappa - 1.0) * lgrd - y2r2d) * str_cof,
        )
        # Unit shear source
        shear_local = (
            (kappa * (xmat * lgrt - xmab * lgrb) + (kappa + 1.0) * (y * ttd - (xmat - xmab))) * dsp_cof,
            -y * lgrd * dsp_cof,
            ((kappa + 3.0) * lgrd + y2r2d) * str_cof,
            (-(kappa - 1.0) * lgrd - y2r2d) * str_cof,
            ((kappa + 1.0) * ttd - xyr2d) * str_cof,
        )

        shear = tuple(np.where(at_end, 0.0, v) for v in rotate_to_global(shear_local, c, s))
        normal = tuple(np.where(at_end, 0.0, v) for v in rotate_to_global(normal_local, c, s))
        return shear, normal

    # ------------------------------------------------------------------
    # Half-space complementary kernel
    # ------------------------------------------------------------------

    def _image(self, px, py, el: ElementArrays, ys: float):
        px, py, mx, my, c, s, a = np.broadcast_arrays(
            np.asarray(px, dtype=float), np.asarray(py, dtype=float),
            el.mid_x, el.mid_y, el.cos, el.sin, el.half_length,
        )
        shape = px.shape
        shear = [np.zeros(shape) for _ in range(5)]
        normal = [np.zeros(shape) for _ in range(5)]

        image_dist_sq = (px - mx) ** 2 + (py - (2.0 * ys - my)) ** 2
        orders = quadrature_order(image_dist_sq, 2.0 * a)

        for order in np.unique(orders):
            mask = orders == order
            sub_shear, sub_normal = self._image_quadrature(
                px[mask], py[mask], mx[mask], my[mask], c[mask], s[mask], a[mask],
                ys, int(order),
            )
            for k in range(5):
                shear[k][mask] = sub_shear[k]
                normal[k][mask] = sub_normal[k]
        return tuple(shear), tuple(normal)

    def _image_quadrature(self, x, y, mx, my, c, s, a, ys, order):
        kappa, str_cof, dsp_cof, _ = self.constants
        k2 = kappa * kappa
        zeta, weights = gauss_legendre(order)

        shear = [np.zeros_like(x) for _ in range(5)]
        normal = [np.zeros_like(x) for _ in range(5)]
        yy = y - ys

        for zk, wk in zip(zeta, weights):
            xce = x - (mx + zk * a * c)
            yp = my + zk * a * s - ys
            ypc = yy + yp
            ymc = yy - yp

            r2 = xce * xce + ypc * ypc
            valid = r2 >= IMAGE_POINT_TOL
            r2 = np.where(valid, r2, 1.0)
            r4 = r2 * r2
            r6 = r4 * r2
            log_r = 0.5 * np.log(r2)
            # half-angle about the image point, branch cut kept above the image
            t = 0.5 * math.pi - 0.5 * np.arctan2(xce, -ypc)
            x2 = xce * xce

            # horizontal unit load
            h_ux = ((2.0 * yp * yy + kappa * x2) / r2 - 4.0 * yp * x2 * yy / r4
                    - 0.5 * (k2 + 1.0) * log_r + 0.5 * (1.0 - k2))
            h_uy = (kappa * xce * ymc / r2 - 4.0 * yp * xce * yy * ypc / r4
                    - (1.0 - k2) * t)
            h_sxx = (xce * (kappa - 1.0) / r2
                     - 4.0 * xce * (kappa * yp * ypc + 3.0 * yp * ymc + kappa * x2) / r4
                     + 32.0 * yp * x2 * xce * yy / r6)
            h_syy = (-xce * (kappa - 1.0) / r2
                     - 4.0 * xce * (kappa * yy * ypc + yp * ymc) / r4
                     + 32.0 * yp * xce * yy * ypc * ypc / r6)
            h_sxy = ((kappa - 1.0) * (ypc - 2.0 * yp) / r2
                     - 4.0 * (2.0 * yp * yy * ypc + x2 * (kappa * yy + yp)) / r4
                     + 32.0 * yp * x2 * yy * ypc / r6)

            # vertical unit load
            v_ux = (4.0 * yp * xce * yy * ypc / r4 + kappa * xce * ymc / r2
                    + (1.0 - k2) * t)
            v_uy = ((kappa * ypc * ypc - 2.0 * yp * yy) / r2
                    + 4.0 * yp * yy * ypc * ypc / r4 - 0.5 * (k2 + 1.0) * log_r)
            v_sxx = (-4.0 * kappa * x2 * ymc / r4
                     + 4.0 * yp * ypc * (ypc * (kappa - 1.0) - 2.0 * yp) / r4
                     - (kappa - 1.0) * (ypc + 6.0 * yp) / r2)
            v_syy = ((kappa - 1.0) * (ypc - 2.0 * yp) / r2
                     - 4.0 * ypc * ((kappa * yy + yp) * ypc - 6.0 * yp * yy) / r4
                     - 32.0 * yp * yy * ypc ** 3 / r6)
            v_sxy = ((kappa - 1.0) * xce / r2
                     - 4.0 * xce * ((kappa * yy - yp) * ypc - 2.0 * yp * yy) / r4
                     - 32.0 * yp * xce * yy * ypc * ypc / r6)

            horizontal = (h_ux, h_uy, h_sxx, h_syy, h_sxy)
            vertical = (v_ux, v_uy, v_sxx, v_syy, v_sxy)
            w = np.where(valid, wk * a, 0.0)
            for k in range(5):
                shear[k] += (horizontal[k] * c + vertical[k] * s) * w
                normal[k] += (-horizontal[k] * s + vertical[k] * c) * w

        scale = (dsp_cof, dsp_cof, str_cof, str_cof, str_cof)
        return (
            tuple(v * f for v, f in zip(shear, scale)),
            tuple(v * f for v, f in zip(normal, scale)),
        )
