"""
Strategy profiles - the data behind each generation strategy.

A strategy differs from the others only in the text it feeds to the models
and a few post-processing switches, so each one is described here as a
StrategyProfile and src.core.strategies turns the profiles into Strategy
objects. Adding a strategy means adding a profile.
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from src.models.generation import ImageConsistency


@dataclass(frozen=True)
class Palette:
    background: str
    primary: str
    secondary: str
    text: str
    accent: str


@dataclass(frozen=True)
class ContentRule:
    """If any keyword occurs in the slide text, use these template fields."""
    keywords: Tuple[str, ...]
    fields: Mapping[str, str]


@dataclass(frozen=True)
class ImageStyle:
    """Style block the Enhancer appends to every image instruction."""
    style: str
    context: str
    guidelines: str
    prohibitions: str


@dataclass(frozen=True)
class LayoutProfile:
    preferred_layouts: Tuple[str, ...]
    image_positioning: str  # dominant | supporting | minimal
    text_density: str       # minimal | balanced | detailed


@dataclass(frozen=True)
class StrategyProfile:
    id: str
    display_name: str
    tagline: str
    goal: str
    guidelines: Tuple[str, ...]
    image_template: str
    image_style_hint: str
    consistency: Mapping[ImageConsistency, str]
    image_style: ImageStyle
    layout: LayoutProfile
    content_rules: Tuple[ContentRule, ...] = ()
    default_fields: Mapping[str, str] = field(default_factory=dict)
    palette: Optional[Palette] = None
    bullet_markers: bool = False


SIMPLE = StrategyProfile(
    id="simple",
    display_name="Simple Style",
    tagline="clean and well-structured",
    goal="the most useful and accurate content",
    guidelines=(
        "Stylish, clean design",
        "Layouts suited to data visualization",
        "Logical structure (agenda, conclusion, next steps)",
        "Structure and readability first, with a simple colour scheme",
    ),
    image_template=(
        "Generate an image that best represents the following content.\n"
        "Use your judgment to determine the most appropriate visual style based on the content context:\n\n"
        "Content: {content}\n\n"
        "Analysis context: {context}\n"
        "Suggested style: {suggested_style}\n"
        "Visual elements: {visual_elements}\n\n"
        "{consistency}\n\n"
        "Create a professional, clean image that supports the content without overwhelming it.\n"
        "Style should be: {style_hint}"
    ),
    image_style_hint=(
        "professional, clean visuals emphasizing diagrams, graphs and charts; "
        "high-quality business-ready imagery related to {topic}"
    ),
    content_rules=(
        ContentRule(
            ("データ", "統計", "グラフ", "%", "data", "statistic", "chart", "graph", "percent"),
            {
                "context": "data-visualization",
                "suggested_style": "clean charts, graphs, or data visualization",
                "visual_elements": "charts, graphs, infographics, data tables",
            },
        ),
        ContentRule(
            ("戦略", "計画", "ビジネス", "経営", "strategy", "plan", "business", "management"),
            {
                "context": "business-strategy",
                "suggested_style": "professional business imagery",
                "visual_elements": "flowcharts, organizational diagrams, timeline, process flow",
            },
        ),
        ContentRule(
            ("技術", "システム", "プロセス", "手法", "technology", "system", "process", "method"),
            {
                "context": "technical-process",
                "suggested_style": "technical diagrams or process illustrations",
                "visual_elements": "technical diagrams, process flow, system architecture, workflow",
            },
        ),
    ),
    default_fields={
        "context": "general-content",
        "suggested_style": "clean, professional illustration that supports the content",
        "visual_elements": "abstract concepts, professional imagery, clean illustrations",
    },
    consistency={
        ImageConsistency.HIGH: (
            "CONSISTENCY REQUIREMENT: Maintain very high visual consistency across all images. "
            "Use the same color palette, art style, lighting, and visual approach throughout the "
            "presentation. All images should look like they belong to the same design system."
        ),
        ImageConsistency.MEDIUM: (
            "CONSISTENCY REQUIREMENT: Maintain moderate visual consistency. Use similar color tones "
            "and general style approach, but allow some variation in specific visual elements."
        ),
        ImageConsistency.LOW: (
            "CONSISTENCY REQUIREMENT: Focus on content relevance over visual consistency. Each image "
            "should be optimized for its specific content while maintaining basic professional quality."
        ),
    },
    image_style=ImageStyle(
        style="Style: Clean, professional imagery with modern design. Use simple compositions and neutral colors.",
        context="Simple and refined presentation design",
        guidelines="Focus on clarity and professionalism. Emphasize graphs, charts, and structured layouts.",
        prohibitions="NO cluttered visuals, excessive decoration, or overly complex compositions.",
    ),
    layout=LayoutProfile(("structured-hierarchy", "simple-clean", "data-focused"), "supporting", "balanced"),
    palette=Palette(
        background="#FFFFFF",
        primary="#2563EB",
        secondary="#64748B",
        text="#1E293B",
        accent="#0EA5E9",
    ),
    bullet_markers=True,
)

EDUCATION = StrategyProfile(
    id="education",
    display_name="Education Style",
    tagline="built for teaching and learning",
    goal="the clearest and most educational content",
    guidelines=(
        "Large, easy-to-read text",
        "Plenty of illustrations and icons",
        "Diagrams and step-by-step layouts",
        "Intuitive visuals rather than specialist charts",
        "Visibility and ease of understanding first",
    ),
    image_template=(
        "{style_hint}\n\n"
        "{consistency}\n\n"
        "Create an engaging, educational image that accurately represents the specific slide "
        "content while applying only the specified visual touch style."
    ),
    image_style_hint=(
        "Friendly, illustration-first imagery with diagrams and step-by-step explanations, "
        "suited to teaching: {topic}. Childish imagery is OK for children's content."
    ),
    consistency={
        ImageConsistency.HIGH: (
            "CONSISTENCY REQUIREMENT: Use the same illustration style, character design (if applicable), "
            "color scheme, and visual approach throughout. All educational images should feel like they "
            "come from the same textbook or learning material."
        ),
        ImageConsistency.MEDIUM: (
            "CONSISTENCY REQUIREMENT: Maintain similar educational art style and color harmony. "
            "Characters or elements should have consistent design language."
        ),
        ImageConsistency.LOW: (
            "CONSISTENCY REQUIREMENT: Focus on educational effectiveness over visual consistency. "
            "Each image should be optimized for learning but maintain basic cohesion."
        ),
    },
    image_style=ImageStyle(
        style="Style: Clear, educational imagery with large, readable elements. Use friendly colors and approachable design.",
        context="Educational and learning-focused presentation",
        guidelines=(
            "Make it engaging for learners. Use illustrations, icons, and step-by-step visual guidance. "
            "For children's content, childish imagery is OK."
        ),
        prohibitions="NO complex professional graphs, overly technical imagery, or intimidating visual elements.",
    ),
    layout=LayoutProfile(("education-friendly", "step-by-step", "large-text"), "dominant", "minimal"),
)

MARKETING = StrategyProfile(
    id="marketing-oriented",
    display_name="Marketing Style",
    tagline="visual impact first",
    goal="the most compelling and impactful content",
    guidelines=(
        "Structure built around visual impact",
        "Layouts centred on product and service photography",
        "Attractive design and colour scheme",
        "Product-photo style placeholder images",
    ),
    image_template=(
        "Create a compelling marketing image that captures attention and communicates value:\n\n"
        "Content: {content}\n\n"
        "Marketing context: {focus}\n"
        "Target emotion: {emotion}\n"
        "Visual approach: {approach}\n\n"
        "{consistency}\n\n"
        "{style_hint}\n\n"
        "Make it visually striking and persuasive while maintaining professionalism."
    ),
    image_style_hint=(
        "Product-photography look, attractive product visuals, high-quality imagery usable "
        "as marketing material for {topic}"
    ),
    content_rules=(
        ContentRule(
            ("製品", "商品", "サービス", "ブランド", "product", "service", "brand"),
            {
                "focus": "product-showcase",
                "emotion": "desire and trust",
                "approach": "product photography style, premium feel",
            },
        ),
        ContentRule(
            ("効果", "メリット", "利益", "価値", "benefit", "advantage", "profit", "value"),
            {
                "focus": "benefits-highlighting",
                "emotion": "excitement and satisfaction",
                "approach": "before/after concepts, success imagery",
            },
        ),
    ),
    default_fields={
        "focus": "brand-communication",
        "emotion": "engagement and interest",
        "approach": "lifestyle imagery, aspirational visuals",
    },
    consistency={
        ImageConsistency.HIGH: (
            "CONSISTENCY REQUIREMENT: Maintain strict brand consistency. Use the same color palette, "
            "photography style, typography treatment, and visual language throughout. All images should "
            "feel like part of a cohesive marketing campaign."
        ),
        ImageConsistency.MEDIUM: (
            "CONSISTENCY REQUIREMENT: Keep consistent marketing tone and general visual approach. Use "
            "similar color schemes and maintain brand personality across images."
        ),
        ImageConsistency.LOW: (
            "CONSISTENCY REQUIREMENT: Focus on individual impact over consistency. Each image should be "
            "optimized for maximum persuasive effect while maintaining professional quality."
        ),
    },
    image_style=ImageStyle(
        style=(
            "Style: Dynamic, visually impactful imagery showcasing products and services. "
            "Use attractive colors and compelling compositions."
        ),
        context="Marketing and visual-oriented presentation",
        guidelines=(
            "Focus on product photography style, attractive visuals for marketing materials. "
            "Create placeholder images for actual product photos."
        ),
        prohibitions="NO boring layouts, academic formality, or conservative design elements.",
    ),
    layout=LayoutProfile(("visual-impact", "hero-focused", "brand-centric"), "dominant", "minimal"),
)

RESEARCH = StrategyProfile(
    id="research-presentation-oriented",
    display_name="Research Style",
    tagline="structured for research presentations",
    goal="the most logical content suited to a research presentation",
    guidelines=(
        "Research structure: introduction, method, results, discussion, conclusion",
        "Clean placement of figures, tables and formulas",
        "Support for frameworks such as PDCA cycles and SWOT diagrams",
        "Infographic-style information display",
    ),
    image_template=(
        "Create a research-appropriate visual that supports academic understanding:\n\n"
        "Content: {content}\n\n"
        "Research context: {category}\n"
        "Academic focus: {focus}\n"
        "Visualization type: {visual_type}\n\n"
        "{consistency}\n\n"
        "{style_hint}\n\n"
        "Prioritize clarity, accuracy, and academic appropriateness over visual appeal."
    ),
    image_style_hint=(
        "Infographics, logic-supporting diagrams, framework figures such as PDCA or SWOT; "
        "structured visuals that support a logical explanation of {topic}"
    ),
    content_rules=(
        ContentRule(
            ("データ", "統計", "結果", "分析", "data", "statistic", "result", "analysis"),
            {
                "category": "data-analysis",
                "focus": "empirical evidence and statistical findings",
                "visual_type": "charts, graphs, statistical visualizations",
            },
        ),
        ContentRule(
            ("理論", "モデル", "フレームワーク", "概念", "theory", "model", "framework", "concept"),
            {
                "category": "theoretical-framework",
                "focus": "conceptual models and theoretical structures",
                "visual_type": "conceptual diagrams, framework illustrations",
            },
        ),
        ContentRule(
            ("手法", "方法", "プロセス", "アプローチ", "method", "process", "approach", "procedure"),
            {
                "category": "methodology",
                "focus": "research methods and processes",
                "visual_type": "process flow, methodology diagrams",
            },
        ),
    ),
    default_fields={
        "category": "general-research",
        "focus": "academic knowledge communication",
        "visual_type": "academic-style illustrations, clean diagrams",
    },
    consistency={
        ImageConsistency.HIGH: (
            "CONSISTENCY REQUIREMENT: Maintain strict academic visual standards. Use the same diagram style, "
            "color coding system, typography, and chart formatting throughout. All visuals should look like "
            "they belong to the same research publication."
        ),
        ImageConsistency.MEDIUM: (
            "CONSISTENCY REQUIREMENT: Keep consistent academic tone and visual approach. Use similar chart "
            "styles, color schemes, and maintain scholarly presentation standards."
        ),
        ImageConsistency.LOW: (
            "CONSISTENCY REQUIREMENT: Focus on content accuracy and clarity over visual consistency. Each "
            "image should be optimized for academic understanding while maintaining professional standards."
        ),
    },
    image_style=ImageStyle(
        style="Style: Structured, analytical imagery with focus on data and frameworks. Use infographic-style visuals.",
        context="Research and analytical presentation",
        guidelines=(
            "Emphasize logical frameworks like PDCA cycles, SWOT diagrams, and structured infographics. "
            "Support logical thinking with clear visual aids."
        ),
        prohibitions="NO decorative imagery, emotional appeals, or non-analytical visual elements.",
    ),
    layout=LayoutProfile(("academic-structure", "research-format", "data-heavy"), "supporting", "detailed"),
    bullet_markers=True,
)

STRATEGY_PROFILES: Tuple[StrategyProfile, ...] = (SIMPLE, EDUCATION, MARKETING, RESEARCH)

PROFILES_BY_ID: Dict[str, StrategyProfile] = {profile.id: profile for profile in STRATEGY_PROFILES}
