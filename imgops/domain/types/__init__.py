from imgops.domain.types.image import Image, ImageInfo
from imgops.domain.types.options import ImageOptions
from imgops.domain.types.transform import SaveTarget, TransformOptions, WatermarkOptions
