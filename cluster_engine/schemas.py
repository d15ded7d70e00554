from decimal import Decimal

from marshmallow import Schema, fields, validate, ValidationError, validates, validates_schema, post_load
from marshmallow.validate import OneOf, Range

from .models import (
    CATEGORY_ORDER, WIN_CATEGORIES, CascadeSettings, CascadeTier, CategoryRange, EngineConfig,
    SymbolDefinition, SynthesisSettings, ToleranceBand, VarianceSettings
)

_DEFAULT_VARIANCE = VarianceSettings()
_DEFAULT_CASCADE = CascadeSettings()
_DEFAULT_SYNTHESIS = SynthesisSettings()

_positive = Range(min=0, min_inclusive=False)
_non_negative = Range(min=0)
_fraction = Range(min=0, max=1)


def _int_keyed(mapping, field_name):
    """JSON object keys are strings; count thresholds must be positive integers."""
    converted = {}
    for key, value in mapping.items():
        try:
            threshold = int(key)
        except (TypeError, ValueError):
            raise ValidationError(f"Threshold '{key}' is not an integer.", field_name)
        if threshold <= 0:
            raise ValidationError(f"Threshold '{key}' must be positive.", field_name)
        converted[threshold] = value
    return converted


# --- Engine configuration schemas ---

class LayoutSchema(Schema):
    columns = fields.Int(required=True, validate=Range(min=1))
    rows = fields.Int(required=True, validate=Range(min=1))


class SymbolSchema(Schema):
    id = fields.Str(required=True, validate=validate.Length(min=1))
    name = fields.Str(required=True)
    weight = fields.Float(required=True, validate=_positive)
    cluster_payouts = fields.Dict(keys=fields.Str(), values=fields.Float(validate=_non_negative), load_default=dict)
    is_scatter = fields.Bool(load_default=False)

    @post_load
    def make_symbol(self, data, **kwargs):
        data['cluster_payouts'] = _int_keyed(data['cluster_payouts'], 'cluster_payouts')
        return SymbolDefinition(**data)


class CategorySchema(Schema):
    probability = fields.Float(required=True, validate=_fraction)
    min = fields.Float(load_default=None, validate=_non_negative)
    max = fields.Float(load_default=None, validate=_non_negative)
    avg = fields.Float(load_default=None, validate=_non_negative)


class VarianceSchema(Schema):
    enabled = fields.Bool(load_default=_DEFAULT_VARIANCE.enabled)
    cluster_strength = fields.Float(load_default=_DEFAULT_VARIANCE.cluster_strength, validate=_non_negative)
    nudge_fraction = fields.Float(load_default=_DEFAULT_VARIANCE.nudge_fraction, validate=_fraction)
    window_size = fields.Int(load_default=_DEFAULT_VARIANCE.window_size, validate=Range(min=1))
    reset_threshold = fields.Int(load_default=_DEFAULT_VARIANCE.reset_threshold, validate=Range(min=1))
    dry_streak_threshold = fields.Int(load_default=_DEFAULT_VARIANCE.dry_streak_threshold, validate=Range(min=1))
    dry_streak_bonus = fields.Float(load_default=_DEFAULT_VARIANCE.dry_streak_bonus, validate=_fraction)
    dry_streak_decay_spins = fields.Int(load_default=_DEFAULT_VARIANCE.dry_streak_decay_spins, validate=Range(min=1))
    loss_floor = fields.Float(load_default=_DEFAULT_VARIANCE.loss_floor, validate=_fraction)
    loss_ceiling = fields.Float(load_default=_DEFAULT_VARIANCE.loss_ceiling, validate=_fraction)
    dry_streak_loss_floor = fields.Float(load_default=_DEFAULT_VARIANCE.dry_streak_loss_floor, validate=_fraction)
    large_win_bonus_share = fields.Float(load_default=_DEFAULT_VARIANCE.large_win_bonus_share, validate=_non_negative)
    jackpot_bonus_share = fields.Float(load_default=_DEFAULT_VARIANCE.jackpot_bonus_share, validate=_non_negative)
    large_win_cap = fields.Float(load_default=_DEFAULT_VARIANCE.large_win_cap, validate=_fraction)
    jackpot_cap = fields.Float(load_default=_DEFAULT_VARIANCE.jackpot_cap, validate=_fraction)

    @post_load
    def make_settings(self, data, **kwargs):
        return VarianceSettings(**data)


class CascadeTierSchema(Schema):
    min_multiplier = fields.Float(required=True, validate=_non_negative)
    chance_factor = fields.Float(required=True, validate=_non_negative)

    @post_load
    def make_tier(self, data, **kwargs):
        return CascadeTier(**data)


class CascadeSchema(Schema):
    enabled = fields.Bool(load_default=_DEFAULT_CASCADE.enabled)
    chance = fields.Float(load_default=_DEFAULT_CASCADE.chance, validate=_fraction)
    multiplier = fields.Float(load_default=_DEFAULT_CASCADE.multiplier, validate=_positive)
    max_chain = fields.Int(load_default=_DEFAULT_CASCADE.max_chain, validate=Range(min=0, max=2))
    tiers = fields.List(fields.Nested(CascadeTierSchema), load_default=lambda: list(_DEFAULT_CASCADE.tiers))

    @post_load
    def make_settings(self, data, **kwargs):
        data['tiers'] = tuple(data['tiers'])
        return CascadeSettings(**data)


class ToleranceBandSchema(Schema):
    below = fields.Float(required=True, allow_none=True, validate=_positive)
    trials = fields.Int(required=True, validate=Range(min=1))
    quick_accept = fields.Float(required=True, validate=_non_negative)
    accept = fields.Float(required=True, validate=_non_negative)

    @validates_schema
    def validate_tolerances(self, data, **kwargs):
        if data['quick_accept'] > data['accept']:
            raise ValidationError("quick_accept must not exceed accept.", 'quick_accept')

    @post_load
    def make_band(self, data, **kwargs):
        return ToleranceBand(**data)


class SynthesisSchema(Schema):
    bands = fields.List(fields.Nested(ToleranceBandSchema), load_default=lambda: list(_DEFAULT_SYNTHESIS.bands))
    fabricate = fields.Bool(load_default=_DEFAULT_SYNTHESIS.fabricate)
    loss_grid_attempts = fields.Int(load_default=_DEFAULT_SYNTHESIS.loss_grid_attempts, validate=Range(min=1))
    symbol_rejection_attempts = fields.Int(load_default=_DEFAULT_SYNTHESIS.symbol_rejection_attempts, validate=Range(min=1))
    any_win_attempts = fields.Int(load_default=_DEFAULT_SYNTHESIS.any_win_attempts, validate=Range(min=0))

    @validates('bands')
    def validate_bands(self, value, **kwargs):
        if not value:
            raise ValidationError("At least one tolerance band is required.")
        uppers = [band.below for band in value]
        if uppers[-1] is not None:
            raise ValidationError("The last tolerance band must be open-ended (below: null).")
        bounded = uppers[:-1]
        if None in bounded or bounded != sorted(bounded):
            raise ValidationError("Tolerance bands must be ordered by ascending upper bound.")

    @post_load
    def make_settings(self, data, **kwargs):
        data['bands'] = tuple(data['bands'])
        return SynthesisSettings(**data)


class EngineConfigSchema(Schema):
    name = fields.Str(load_default="Cluster Pay Engine")
    target_rtp = fields.Float(required=True, validate=_positive)
    layout = fields.Nested(LayoutSchema, required=True)
    min_cluster_size = fields.Int(required=True, validate=Range(min=1))
    symbols = fields.List(fields.Nested(SymbolSchema), required=True, validate=validate.Length(min=1))
    scatter_payouts = fields.Dict(keys=fields.Str(), values=fields.Float(validate=_non_negative), load_default=dict)
    categories = fields.Dict(
        keys=fields.Str(validate=OneOf([c.value for c in CATEGORY_ORDER])),
        values=fields.Nested(CategorySchema),
        required=True
    )
    variance = fields.Nested(VarianceSchema, load_default=VarianceSettings)
    cascade = fields.Nested(CascadeSchema, load_default=CascadeSettings)
    synthesis = fields.Nested(SynthesisSchema, load_default=SynthesisSettings)

    @validates('symbols')
    def validate_unique_symbols(self, value, **kwargs):
        ids = [symbol.id for symbol in value]
        if len(ids) != len(set(ids)):
            raise ValidationError("Symbol ids must be unique.")

    @validates_schema
    def validate_categories(self, data, **kwargs):
        categories = data.get('categories', {})
        missing = [c.value for c in CATEGORY_ORDER if c.value not in categories]
        if missing:
            raise ValidationError(f"Missing categories: {', '.join(missing)}", 'categories')
        for category in WIN_CATEGORIES:
            entry = categories[category.value]
            if entry['min'] is None or entry['max'] is None or entry['avg'] is None:
                raise ValidationError(f"Category '{category.value}' needs min, max and avg.", 'categories')
            if entry['min'] > entry['max']:
                raise ValidationError(f"Category '{category.value}' has min above max.", 'categories')

    @post_load
    def make_config(self, data, **kwargs):
        categories = data['categories']
        return EngineConfig(
            name=data['name'],
            target_rtp=data['target_rtp'],
            columns=data['layout']['columns'],
            rows=data['layout']['rows'],
            min_cluster_size=data['min_cluster_size'],
            symbols=tuple(data['symbols']),
            scatter_payouts=_int_keyed(data['scatter_payouts'], 'scatter_payouts'),
            probabilities={c: categories[c.value]['probability'] for c in CATEGORY_ORDER},
            ranges={
                c: CategoryRange(categories[c.value]['min'], categories[c.value]['max'], categories[c.value]['avg'])
                for c in WIN_CATEGORIES
            },
            variance=data['variance'],
            cascade=data['cascade'],
            synthesis=data['synthesis']
        )


# --- Request / response schemas ---

class SpinRequestSchema(Schema):
    wager = fields.Decimal(required=True, allow_nan=False)

    def __init__(self, min_wager=None, max_wager=None, **kwargs):
        super().__init__(**kwargs)
        self.min_wager = Decimal(str(min_wager)) if min_wager is not None else None
        self.max_wager = Decimal(str(max_wager)) if max_wager is not None else None

    @validates('wager')
    def validate_wager(self, value, **kwargs):
        if value <= 0:
            raise ValidationError("Wager must be positive.")
        if self.min_wager is not None and value < self.min_wager:
            raise ValidationError(f"Wager must be at least {self.min_wager}.")
        if self.max_wager is not None and value > self.max_wager:
            raise ValidationError(f"Wager must not exceed {self.max_wager}.")


class CascadeResultSchema(Schema):
    grid = fields.List(fields.List(fields.Str()))
    payout = fields.Decimal(as_string=True)
    winning_cells = fields.List(fields.List(fields.Int()))
    category = fields.Function(lambda obj: obj.category.value)
    target_multiplier = fields.Float()
    match_type = fields.Str()


class SpinResultSchema(Schema):
    wager = fields.Decimal(as_string=True)
    grid = fields.List(fields.List(fields.Str()))
    payout = fields.Decimal(as_string=True)
    base_payout = fields.Decimal(as_string=True)
    winning_cells = fields.List(fields.List(fields.Int()))
    category = fields.Function(lambda obj: obj.category.value)
    target_multiplier = fields.Float()
    match_type = fields.Str()
    cascades = fields.List(fields.Nested(CascadeResultSchema))
    cascade_payout = fields.Decimal(as_string=True)
    is_win = fields.Bool()
