"""
亮度 / 对比度刻度转换

URL 中的 brightness 与 contrast 使用以 1.0 为中心的倍率刻度（Cloudflare 兼容），
而 ImageMagick 的 ``-brightness-contrast`` 接受 -100..100 的取值。
"""


def transform_from_cloudflare_scale(number: float) -> float:
    """
    将以 1.0 为中性点的倍率转换为 -100..100 刻度。

    n >= 1 时为 100 * (1 - 1/n)，n < 1 时为 100 * (n - 1)。

    >>> transform_from_cloudflare_scale(2.0)
    50.0
    >>> transform_from_cloudflare_scale(0.5)
    -50.0
    """
    if number >= 1:
        return 100 * (1 - 1 / number)
    return 100 * (number - 1)


def brightness_gamma(brightness: float) -> float:
    """
    根据已转换的亮度值推导补偿 gamma。

    负亮度的幅度先经过两段式折算，再除以 100，使中间调保持平衡。
    """
    if brightness >= 0:
        return min(1.0, (100 - brightness) / 100)

    magnitude = abs(brightness)
    if magnitude >= 50:
        scaled = 100 - (magnitude - 50) * 2
    else:
        scaled = abs((magnitude - 50) * 2)
    return scaled / 100
