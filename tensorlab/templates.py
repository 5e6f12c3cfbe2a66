"""Kernel source templates rendered by the element-wise compiler."""

UNARY_KERNEL = """\
def $name(
#ifnot IN_PLACE
    re_y, im_y,
#endif
    re_x, im_x, param
):
    for i in prange(len(re_x)):
        xr = re_x[i]
#if X_COMPLEX
        xi = im_x[i]
#endif
        $body
"""

BINARY_KERNEL = """\
def $name(
#ifnot IN_PLACE
    re_z, im_z,
#endif
    shape_z, re_x, im_x, strides_x, re_y, im_y, strides_y
):
    ndim = len(shape_z)
    n = 1
    for d in range(ndim):
        n *= shape_z[d]
    for i in prange(n):
#if BROADCAST
        ox = broadcast_offset(i, shape_z, strides_x)
        oy = broadcast_offset(i, shape_z, strides_y)
#else
        ox = i
        oy = i
#endif
        xr = re_x[ox]
#if X_COMPLEX
        xi = im_x[ox]
#endif
        yr = re_y[oy]
#if Y_COMPLEX
        yi = im_y[oy]
#endif
        $body
"""
