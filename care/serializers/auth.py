import bleach
from rest_framework import serializers

from care.models import PatientProfile, User


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField(required=False, allow_blank=True)
    email = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField()

    def validate(self, attrs):
        account = (attrs.get('username') or attrs.get('email') or '').strip()
        if not account:
            raise serializers.ValidationError({'username': 'username or email is required'})
        attrs['account'] = account
        return attrs

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('password is required')
        return v


class RegisterSerializer(serializers.Serializer):
    username = serializers.RegexField(r'^[\w.@+-]{3,150}$')
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    name = serializers.CharField(max_length=150)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=30)
    birth_date = serializers.DateField(required=False, allow_null=True)
    sex = serializers.ChoiceField(choices=[c for c, _ in PatientProfile.SEX_CHOICES], required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate_name(self, v):
        v = _clean(v)
        if len(v) < 2:
            raise serializers.ValidationError('name must have at least 2 characters')
        return v

    def validate_phone(self, v):
        return _clean(v)

    def validate_address(self, v):
        return _clean(v)

    def to_service_kwargs(self) -> dict:
        vd = dict(self.validated_data)
        profile = {k: vd.pop(k) for k in ('birth_date', 'sex', 'address') if k in vd}
        return {**vd, 'profile': profile}


class ProfileUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, max_length=150)
    email = serializers.EmailField(required=False)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=30)
    birth_date = serializers.DateField(required=False, allow_null=True)
    sex = serializers.ChoiceField(choices=[c for c, _ in PatientProfile.SEX_CHOICES], required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)
    blood_type = serializers.CharField(required=False, allow_blank=True, max_length=5)
    allergies = serializers.CharField(required=False, allow_blank=True)
    emergency_contact = serializers.CharField(required=False, allow_blank=True, max_length=120)
    specialty = serializers.CharField(required=False, max_length=120)
    bio = serializers.CharField(required=False, allow_blank=True)
    license_number = serializers.CharField(required=False, allow_blank=True, max_length=64)
    consultation_fee = serializers.DecimalField(required=False, max_digits=10, decimal_places=2, min_value=0)
    profile_image = serializers.ImageField(required=False)

    def validate(self, attrs):
        for key in ('name', 'phone', 'address', 'allergies', 'emergency_contact', 'specialty', 'bio'):
            if key in attrs:
                attrs[key] = _clean(attrs[key])
        return attrs


class ChangePasswordSerializer(serializers.Serializer):
    old_password = serializers.CharField()
    new_password = serializers.CharField(min_length=8)


class AdminUserSerializer(serializers.Serializer):
    username = serializers.RegexField(r'^[\w.@+-]{3,150}$')
    email = serializers.EmailField(required=False, allow_blank=True)
    password = serializers.CharField(write_only=True, min_length=8)
    name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=30)
    role = serializers.ChoiceField(choices=[c for c, _ in User.ROLE_CHOICES])
    specialty = serializers.CharField(required=False, max_length=120)
    consultation_fee = serializers.DecimalField(required=False, max_digits=10, decimal_places=2, min_value=0)

    def to_service_kwargs(self) -> dict:
        vd = dict(self.validated_data)
        profile = {k: vd.pop(k) for k in ('specialty', 'consultation_fee') if k in vd}
        vd['name'] = _clean(vd.get('name'))
        return {**vd, 'profile': profile}


class AdminUserUpdateSerializer(ProfileUpdateSerializer):
    role = serializers.ChoiceField(choices=[c for c, _ in User.ROLE_CHOICES], required=False)
    is_active = serializers.BooleanField(required=False)


class UserListQuerySerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=[c for c, _ in User.ROLE_CHOICES], required=False)
    q = serializers.CharField(max_length=64, required=False)
    active = serializers.BooleanField(required=False, allow_null=True, default=None)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=100, required=False)
