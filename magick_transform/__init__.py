"""
ImageMagick 按需图像变换

通过 URL 中的选项字符串（如 ``width=300,fit=cover,format=webp``）对存储中的源图
进行缩放、裁剪、裁边、旋转、调色、滤镜与格式转换。
"""

__version__ = "5.0.0"
