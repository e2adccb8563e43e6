"""
Configuration of the dense CRF layer.

+ Kernel lists are parallel: `pos_w[k]` goes with `pos_xy_std[k]`, `bi_w[k]` with `bi_xy_std[k]` and `bi_rgb_std[k]`.
+ Fixed once constructed.
"""

from .errors import ConfigurationError

LATTICE_BACKENDS = ("tf", "np")


class DenseCRFConfig:
    """ Dense CRF layer """
    def __init__(self, max_iter: int=10, pos_w=(3.0, ), pos_xy_std=(3.0, ), bi_w=(), bi_xy_std=(), bi_rgb_std=(), has_image: bool=False, lattice_backend: str="tf") -> None:
        # ==> Mean-field parameters
        self.max_iter = int(max_iter) # of iterations, fixed

        # ==> Position-only kernels, d = 2
        self.pos_w = tuple(float(w) for w in pos_w)
        self.pos_xy_std = tuple(float(s) for s in pos_xy_std)

        # ==> Position + color kernels, d = 5
        self.bi_w = tuple(float(w) for w in bi_w)
        self.bi_xy_std = tuple(float(s) for s in bi_xy_std)
        self.bi_rgb_std = tuple(float(s) for s in bi_rgb_std)

        # ==> Whether color input will be supplied
        self.has_image = bool(has_image)
        self.lattice_backend = lattice_backend

        self.validate()

    def validate(self) -> None:
        if self.max_iter < 0:
            raise ConfigurationError("max_iter should be non-negative, got {}.".format(self.max_iter))

        if len(self.pos_w) != len(self.pos_xy_std):
            raise ConfigurationError("pos_w and pos_xy_std should have the same size.")
        if len(self.bi_w) != len(self.bi_xy_std):
            raise ConfigurationError("bi_w and bi_xy_std should have the same size.")
        if len(self.bi_w) != len(self.bi_rgb_std):
            raise ConfigurationError("bi_w and bi_rgb_std should have the same size.")

        for std in self.pos_xy_std + self.bi_xy_std + self.bi_rgb_std:
            if std <= 0:
                raise ConfigurationError("Kernel bandwidths should be positive, got {}.".format(std))

        if self.has_image and len(self.bi_w) == 0:
            raise ConfigurationError("has image as input, but no bilateral parameters specified.")
        if not self.has_image and len(self.bi_w) > 0:
            raise ConfigurationError("bilateral parameters specified, but no image will be given as input.")

        if self.lattice_backend not in LATTICE_BACKENDS:
            raise ConfigurationError("Unknown lattice backend {}, expected one of {}.".format(self.lattice_backend, LATTICE_BACKENDS))

    @classmethod
    def from_dict(cls, params: dict) -> "DenseCRFConfig":
        """
        Build a config from a host parameter mapping.

        Args:
            params: keys among the constructor arguments; scalar kernel parameters are accepted for one-kernel lists.

        Returns:
            config.
        """
        known = ("max_iter", "pos_w", "pos_xy_std", "bi_w", "bi_xy_std", "bi_rgb_std", "has_image", "lattice_backend")
        unknown = sorted(set(params) - set(known))
        if unknown:
            raise ConfigurationError("Unknown dense CRF parameters: {}.".format(", ".join(unknown)))

        kwargs = dict(params)
        for key in ("pos_w", "pos_xy_std", "bi_w", "bi_xy_std", "bi_rgb_std"):
            if key in kwargs and isinstance(kwargs[key], (int, float)):
                kwargs[key] = (kwargs[key], )

        return cls(**kwargs)

    @property
    def num_kernels(self) -> int:
        return len(self.pos_w) + (len(self.bi_w) if self.has_image else 0)

    def __repr__(self) -> str:
        return "DenseCRFConfig(max_iter={}, pos_w={}, pos_xy_std={}, bi_w={}, bi_xy_std={}, bi_rgb_std={}, has_image={}, lattice_backend={!r})".format(
            self.max_iter, self.pos_w, self.pos_xy_std, self.bi_w, self.bi_xy_std, self.bi_rgb_std, self.has_image, self.lattice_backend)
